from typing import List

from pgdeck.introspection.descriptors import FunctionParameter
from pgdeck.logging_config import get_logger

logger = get_logger(__name__)

PARAMETER_MODES = ("INOUT", "IN", "OUT", "VARIADIC")


def split_top_level(text: str, separator: str = ",") -> List[str]:
    """Split on ``separator`` outside parentheses, brackets and quotes."""
    parts = []
    depth = 0
    quote = None
    current = []
    for ch in text:
        if quote:
            current.append(ch)
            if ch == quote:
                quote = None
            continue
        if ch in ("'", '"'):
            quote = ch
        elif ch in "([":
            depth += 1
        elif ch in ")]":
            depth -= 1
        elif ch == separator and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return parts


def _split_name(text: str) -> List[str]:
    if text.startswith('"'):
        i = 1
        name = []
        while i < len(text):
            if text[i] == '"':
                if text[i + 1:i + 2] == '"':
                    name.append('"')
                    i += 2
                    continue
                break
            name.append(text[i])
            i += 1
        rest = text[i + 1:].strip()
        return ["".join(name), rest] if rest else ["".join(name)]
    return text.split(None, 1)


def parse_argument(token: str) -> FunctionParameter | None:
    text = token.strip()
    if not text:
        return None

    mode = "IN"
    head = text.split(None, 1)
    if len(head) == 2 and head[0].upper() in PARAMETER_MODES:
        mode = head[0].upper()
        text = head[1]

    default_value = None
    default_parts = split_top_level(text, " ")
    for i, word in enumerate(default_parts):
        if word.upper() == "DEFAULT" and i > 0:
            default_value = " ".join(default_parts[i + 1:]).strip() or None
            text = " ".join(default_parts[:i])
            break
        if word == "=" and i > 0:
            default_value = " ".join(default_parts[i + 1:]).strip() or None
            text = " ".join(default_parts[:i])
            break

    parts = _split_name(text.strip())
    if len(parts) < 2:
        logger.warning("Skipping function argument without a name: %r", token.strip())
        return None

    return FunctionParameter(name=parts[0], type=parts[1].strip(), default_value=default_value, mode=mode)


def parse_function_arguments(arguments: str | None) -> tuple[FunctionParameter, ...]:
    """
    Parse the output of ``pg_get_function_arguments`` into parameters.

    Arguments without a name cannot be represented and are skipped with a
    warning.
    """
    if arguments is None:
        return ()
    text = arguments.strip()
    if text.startswith("(") and text.endswith(")"):
        text = text[1:-1]
    if not text.strip():
        return ()

    parameters = []
    for token in split_top_level(text):
        parameter = parse_argument(token)
        if parameter is not None:
            parameters.append(parameter)
    return tuple(parameters)
