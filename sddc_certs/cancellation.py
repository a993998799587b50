"""
Cancellation signals for blocking waits.

A CancellationToken is the single escape hatch threaded through every
suspension point of an operation: API calls cap their timeout by it and
sleeps between polls wake up as soon as it fires.
"""

import threading
import time
from typing import Optional


class CancellationToken:
    """
    Manually triggered cancellation signal.

    Safe to cancel from another thread; waiters are woken immediately.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Fire the signal."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the signal fires on its own, None if never."""
        return None

    def wait(self, seconds: float) -> bool:
        """
        Sleep for up to `seconds`, returning early on cancellation.

        Returns:
            True if the token was cancelled before or during the sleep
        """
        if seconds <= 0:
            return self.cancelled
        return self._event.wait(seconds)


class Deadline(CancellationToken):
    """
    Cancellation signal that also fires once a time budget is used up.

    Args:
        seconds: Total budget, measured from construction
        clock: Monotonic clock, injectable for tests
    """

    def __init__(self, seconds: float, clock=time.monotonic):
        super().__init__()
        self._clock = clock
        self.expires_at = clock() + seconds

    def remaining(self) -> Optional[float]:
        return max(0.0, self.expires_at - self._clock())

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.remaining() <= 0

    def wait(self, seconds: float) -> bool:
        if self.cancelled:
            return True
        budget = min(seconds, self.remaining())
        if budget > 0 and self._event.wait(budget):
            return True
        return self.cancelled
