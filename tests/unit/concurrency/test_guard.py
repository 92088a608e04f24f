"""
Unit tests for pgdeck.concurrency.guard and pgdeck.concurrency.signal.
"""

import pytest

from pgdeck.concurrency.guard import StaleRequestGuard
from pgdeck.concurrency.signal import CancellationSignal, check
from pgdeck.errors import Cancelled


class TestStaleRequestGuard:
    """Generation tracking for UI requests."""

    def test_begin_makes_token_current(self):
        guard = StaleRequestGuard()
        token = guard.begin()

        assert guard.is_current(token)
        assert guard.current is token
        assert not token.signal.cancelled

    def test_begin_cancels_previous(self):
        """Starting a new request cancels and supersedes the previous one."""
        guard = StaleRequestGuard()
        first = guard.begin()
        second = guard.begin()

        assert first.signal.cancelled
        assert not guard.is_current(first)
        assert guard.is_current(second)
        assert second.generation == first.generation + 1

    def test_cancel_if_current(self):
        guard = StaleRequestGuard()
        token = guard.begin()

        assert guard.cancel_if_current(token) is True
        assert token.signal.cancelled
        assert not guard.is_current(token)

    def test_cancel_if_current_ignores_stale_token(self):
        """A stale token cannot cancel the newer request."""
        guard = StaleRequestGuard()
        old = guard.begin()
        new = guard.begin()

        assert guard.cancel_if_current(old) is False
        assert not new.signal.cancelled


class TestCancellationSignal:
    """One-shot cancellation flag."""

    def test_callbacks_run_once(self):
        signal = CancellationSignal()
        calls = []
        signal.add_callback(lambda: calls.append(1))

        signal.cancel()
        signal.cancel()

        assert calls == [1]

    def test_callback_added_after_cancel_runs_immediately(self):
        signal = CancellationSignal()
        signal.cancel()
        calls = []

        signal.add_callback(lambda: calls.append(1))

        assert calls == [1]

    def test_removed_callback_not_called(self):
        signal = CancellationSignal()
        calls = []

        def callback():
            calls.append(1)

        signal.add_callback(callback)
        signal.remove_callback(callback)
        signal.remove_callback(callback)
        signal.cancel()

        assert calls == []

    def test_check(self):
        signal = CancellationSignal()
        check(None)
        check(signal)

        signal.cancel()
        with pytest.raises(Cancelled):
            check(signal)
