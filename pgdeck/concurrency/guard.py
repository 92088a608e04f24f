from dataclasses import dataclass, field
from typing import Optional

from pgdeck.concurrency.signal import CancellationSignal


@dataclass(frozen=True)
class RequestToken:
    generation: int
    signal: CancellationSignal = field(compare=False)


class StaleRequestGuard:
    """
    Tracks which UI-originated request is the current one.

    Starting a new request cancels the signal of the previous one. Results
    of a request may be applied only while :meth:`is_current` holds for its
    token.
    """

    def __init__(self):
        self._generation = 0
        self._current: Optional[RequestToken] = None

    @property
    def current(self) -> Optional[RequestToken]:
        return self._current

    def begin(self) -> RequestToken:
        if self._current is not None:
            self._current.signal.cancel()
        self._generation += 1
        self._current = RequestToken(self._generation, CancellationSignal())
        return self._current

    def is_current(self, token: RequestToken) -> bool:
        return self._current is token and not token.signal.cancelled

    def cancel_if_current(self, token: RequestToken) -> bool:
        """Cancel ``token`` if nothing newer has started. Returns whether it did."""
        if self._current is not token:
            return False
        token.signal.cancel()
        return True
