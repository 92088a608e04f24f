"""
Cell values of the edit grid.

A cell is one of a closed set of variants, discriminated by ``kind``. Values
whose driver type has no variant of its own (numeric, timestamps, uuid,
arrays...) are kept as :class:`UnsupportedValue`: they carry the original
driver object so they can still be bound in key predicates, and a display
string for the grid.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictBytes, StrictInt, StrictStr, TypeAdapter


class _Value(BaseModel):
    model_config = ConfigDict(frozen=True)


class NullValue(_Value):
    kind: Literal["null"] = "null"

    @property
    def display(self) -> str:
        return "NULL"


class BoolValue(_Value):
    kind: Literal["bool"] = "bool"
    value: StrictBool

    @property
    def display(self) -> str:
        return "true" if self.value else "false"


class IntValue(_Value):
    kind: Literal["int"] = "int"
    value: StrictInt

    @property
    def display(self) -> str:
        return str(self.value)


class RealValue(_Value):
    kind: Literal["real"] = "real"
    value: float

    @property
    def display(self) -> str:
        return repr(self.value)


class TextValue(_Value):
    kind: Literal["text"] = "text"
    value: StrictStr

    @property
    def display(self) -> str:
        return self.value


class BytesValue(_Value):
    model_config = ConfigDict(frozen=True, ser_json_bytes="base64", val_json_bytes="base64")

    kind: Literal["bytes"] = "bytes"
    value: StrictBytes

    @property
    def display(self) -> str:
        return "\\x" + self.value.hex()


class UnsupportedValue(_Value):
    kind: Literal["unsupported"] = "unsupported"
    type_name: str
    text: str
    raw: Any = Field(default=None, exclude=True)

    @property
    def display(self) -> str:
        return self.text


RowValue = Annotated[
    Union[NullValue, BoolValue, IntValue, RealValue, TextValue, BytesValue, UnsupportedValue],
    Field(discriminator="kind"),
]

row_value_adapter = TypeAdapter(RowValue)

NULL = NullValue()


def from_python(value: Any, type_name: Optional[str] = None):
    """Wrap a driver value in its RowValue variant."""
    if value is None:
        return NULL
    if isinstance(value, (NullValue, BoolValue, IntValue, RealValue, TextValue, BytesValue, UnsupportedValue)):
        return value
    # bool before int: bool is a subclass of int
    if isinstance(value, bool):
        return BoolValue(value=value)
    if isinstance(value, int):
        return IntValue(value=value)
    if isinstance(value, float):
        return RealValue(value=value)
    if isinstance(value, str):
        return TextValue(value=value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return BytesValue(value=bytes(value))
    return UnsupportedValue(type_name=type_name or type(value).__name__, text=str(value), raw=value)


def to_python(value) -> Any:
    """The object to bind as a query parameter for ``value``."""
    if isinstance(value, NullValue):
        return None
    if isinstance(value, UnsupportedValue):
        return value.raw
    return value.value


def normalize(value):
    """Blank text is stored as NULL."""
    if isinstance(value, TextValue) and not value.value.strip():
        return NULL
    return value


def is_null(value) -> bool:
    return isinstance(value, NullValue)
