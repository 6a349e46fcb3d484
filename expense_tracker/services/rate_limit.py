"""
Rate Limiter for Mutating Store Operations

Advisory backpressure against runaway loops (a buggy import flooding
single-record adds, a UI stuck re-saving). It is NOT a security
boundary: state lives for the lifetime of the instance, is never
persisted, and resets on restart.

DESIGN DECISION: The limiter is an explicit instance injected into the
store rather than module-level state, so every test (and every store)
can start from a clean slate.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional


class RateLimitExceededError(Exception):
    """Too many calls of one operation kind inside the current window."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__("Too many operations, please wait")


@dataclass
class _Window:
    count: int
    window_end: float


class RateLimiter:
    """
    Per-operation-kind counter over a fixed window.

    The first call for a kind opens a window and is allowed. Later calls
    inside the window are allowed while the count is below `max_ops`;
    once it reaches `max_ops` calls are denied until the window expires
    and the counter starts over.
    """

    def __init__(
        self,
        max_ops: int = 100,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_max_ops = max_ops
        self.default_window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    def check(
        self,
        operation: str,
        max_ops: Optional[int] = None,
        window_seconds: Optional[float] = None,
    ) -> bool:
        """
        Record one call of `operation` and report whether it is allowed.

        Denied calls are not counted.
        """
        max_ops = self.default_max_ops if max_ops is None else max_ops
        window_seconds = (
            self.default_window_seconds if window_seconds is None else window_seconds
        )
        now = self._clock()

        current = self._windows.get(operation)
        if current is None or now > current.window_end:
            self._windows[operation] = _Window(count=1, window_end=now + window_seconds)
            return True

        if current.count >= max_ops:
            return False

        current.count += 1
        return True

    def remaining(self, operation: str, max_ops: Optional[int] = None) -> int:
        """Calls still allowed in the current window."""
        max_ops = self.default_max_ops if max_ops is None else max_ops
        current = self._windows.get(operation)
        if current is None or self._clock() > current.window_end:
            return max_ops
        return max(max_ops - current.count, 0)

    def reset(self, operation: Optional[str] = None) -> None:
        """Forget one operation's window, or all of them."""
        if operation is None:
            self._windows.clear()
        else:
            self._windows.pop(operation, None)
