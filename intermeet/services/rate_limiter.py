# intermeet/services/rate_limiter.py

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict


@dataclass
class Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """
    Fixed-window limiter keyed by identity.

    The first hit opens a window of ``window_seconds``; up to ``max_requests``
    hits are allowed inside it. Windows live in process memory, so each
    instance limits on its own.
    """

    def __init__(self, max_requests: int = 10, window_seconds: float = 60,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self.windows: Dict[str, Window] = {}

    def hit(self, key: str) -> bool:
        """Record an attempt. Returns False when the key is over its limit."""
        now = self.clock()
        window = self.windows.get(key)
        if window is None or now > window.reset_at:
            self.windows[key] = Window(count=1, reset_at=now + self.window_seconds)
            return True
        if window.count >= self.max_requests:
            return False
        window.count += 1
        return True

    def retry_after(self, key: str) -> int:
        window = self.windows.get(key)
        if window is None:
            return 0
        return max(0, int(window.reset_at - self.clock()) + 1)

    def cleanup(self) -> int:
        now = self.clock()
        expired = [k for k, w in self.windows.items() if now > w.reset_at]
        for key in expired:
            del self.windows[key]
        return len(expired)
