"""Sliding-window request rate limiter."""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field


@dataclass(slots=True)
class SlidingWindowRateLimiter:
    """Bound outbound requests to ``max_requests`` per ``window_s`` seconds.

    Attributes:
        max_requests: Requests allowed inside any trailing window.
        window_s: Window length in seconds.
        margin_s: Extra slack added to every computed wait.
        clock: Monotonic clock returning seconds.
        sleep: Sleep function, injectable for tests.
    """

    max_requests: int
    window_s: float
    margin_s: float = 0.0
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], None] = time.sleep
    _timestamps: deque[float] = field(default_factory=deque)

    def acquire(self) -> float:
        """Block until another request fits in the window.

        Returns:
            Total seconds slept.
        """

        slept = 0.0
        if self.max_requests <= 0:
            return slept
        self._prune(self.clock())
        while len(self._timestamps) >= self.max_requests:
            now = self.clock()
            wait_s = self.window_s - (now - self._timestamps[0]) + self.margin_s
            if wait_s > 0:
                self.sleep(wait_s)
                slept += wait_s
            self._prune(self.clock())
        return slept

    def record(self) -> None:
        """Record a completed request at the current time."""
        self._timestamps.append(self.clock())

    @property
    def recorded(self) -> list[float]:
        return list(self._timestamps)

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_s
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()


@dataclass(slots=True)
class MinIntervalPacer:
    """Keep at least ``interval_s`` seconds between consecutive calls."""

    interval_s: float
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], None] = time.sleep
    _last_call: float | None = None

    def wait(self) -> float:
        """Sleep as needed, then mark the call time; returns seconds slept."""
        slept = 0.0
        now = self.clock()
        if self._last_call is not None:
            remaining = self.interval_s - (now - self._last_call)
            if remaining > 0:
                self.sleep(remaining)
                slept = remaining
        self._last_call = self.clock()
        return slept
