from typing import Callable, List

from pgdeck.errors import Cancelled


class CancellationSignal:
    """
    One-shot cancellation flag shared between the issuer of a request and
    the code doing the work.

    Callbacks registered with :meth:`add_callback` run synchronously, in
    registration order, the first time :meth:`cancel` is called.
    """

    def __init__(self):
        self._cancelled = False
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], None]) -> None:
        if self._cancelled:
            callback()
            return
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[], None]) -> None:
        try:
            self._callbacks.remove(callback)
        except ValueError:
            pass

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise Cancelled()

    def __repr__(self) -> str:
        return f"CancellationSignal(cancelled={self._cancelled})"


def check(signal) -> None:
    """Raise Cancelled when ``signal`` is set; a missing signal never cancels."""
    if signal is not None:
        signal.raise_if_cancelled()
