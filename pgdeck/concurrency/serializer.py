"""
FIFO mutual exclusion for catalog requests.

A :class:`RequestSerializer` hands out at most one :class:`Permit` at a time.
Waiters are queued in arrival order. A waiter whose cancellation signal fires
before it is granted is dropped from the queue and raises
:class:`~pgdeck.errors.Cancelled`; it never takes a slot. Both grant and
abandonment run synchronously on the event loop, so exactly one of them wins
for any waiter.
"""

import asyncio
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator, Deque, Optional

from pgdeck.concurrency.signal import CancellationSignal
from pgdeck.errors import Cancelled
from pgdeck.logging_config import get_logger

logger = get_logger(__name__)


class Permit:
    """Proof of exclusive ownership, returned by RequestSerializer.acquire."""

    __slots__ = ("serial", "released")

    def __init__(self, serial: int):
        self.serial = serial
        self.released = False

    def __repr__(self) -> str:
        return f"Permit(serial={self.serial}, released={self.released})"


class RequestSerializer:
    def __init__(self):
        self._holder: Optional[Permit] = None
        self._waiters: Deque[asyncio.Future] = deque()
        self._issued = 0

    @property
    def locked(self) -> bool:
        return self._holder is not None

    @property
    def waiting(self) -> int:
        return sum(1 for fut in self._waiters if not fut.done())

    def _grant(self) -> Permit:
        self._issued += 1
        self._holder = Permit(self._issued)
        return self._holder

    def _wake_next(self) -> None:
        while self._waiters:
            fut = self._waiters.popleft()
            if fut.done():
                continue
            fut.set_result(self._grant())
            return

    def _discard(self, fut: asyncio.Future) -> None:
        try:
            self._waiters.remove(fut)
        except ValueError:
            pass

    async def acquire(self, signal: Optional[CancellationSignal] = None) -> Permit:
        """
        Wait for exclusive ownership.

        Raises:
            Cancelled: ``signal`` fired before the permit was granted.
        """
        if signal is not None and signal.cancelled:
            raise Cancelled()

        if self._holder is None:
            return self._grant()

        fut = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)

        def abandon() -> None:
            if not fut.done():
                self._discard(fut)
                fut.set_exception(Cancelled())

        if signal is not None:
            signal.add_callback(abandon)
        try:
            return await fut
        except asyncio.CancelledError:
            # The task itself was cancelled; hand on a permit it already won.
            if fut.done() and not fut.cancelled() and fut.exception() is None:
                self.release(fut.result())
            else:
                self._discard(fut)
            raise
        finally:
            if signal is not None:
                signal.remove_callback(abandon)

    def release(self, permit: Permit) -> None:
        if permit.released:
            raise RuntimeError(f"{permit!r} was already released")
        if permit is not self._holder:
            raise RuntimeError(f"{permit!r} is not the outstanding permit")
        permit.released = True
        self._holder = None
        self._wake_next()

    @asynccontextmanager
    async def permit(self, signal: Optional[CancellationSignal] = None) -> AsyncIterator[Permit]:
        granted = await self.acquire(signal)
        try:
            yield granted
        finally:
            self.release(granted)
