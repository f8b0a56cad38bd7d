"""
Fixed-window rate limiting for POST /send.

Each key gets a counter and a window start time. The counter resets once the
window is older than ``window_seconds``. Counting and the limit comparison
happen under one lock so concurrent bursts cannot undercount.

Keys come from rate_limit_key(): the caller's shared secret when one is
presented (every caller holding that secret shares one budget), otherwise
the client address. Callers behind one NAT address share the address budget.
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

DEFAULT_WINDOW_SECONDS = 60
DEFAULT_MAX_REQUESTS = 30

# Expired windows are swept at most this often to bound memory
_SWEEP_INTERVAL_SECONDS = 300


@dataclass
class RateLimitWindow:
    started_at: float
    count: int = 0


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after: int = 0


class FixedWindowRateLimiter:
    """
    Thread-safe fixed-window counter keyed by caller identity.

    ``clock`` returns seconds and defaults to time.monotonic; tests inject a
    fake clock to step across window boundaries.
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._windows: Dict[str, RateLimitWindow] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def hit(self, key: str) -> RateLimitDecision:
        """Count one request for ``key`` and report whether it is allowed."""
        with self._lock:
            now = self._clock()
            self._sweep(now)

            window = self._windows.get(key)
            if window is None or now - window.started_at > self.window_seconds:
                window = RateLimitWindow(started_at=now)
                self._windows[key] = window

            if window.count >= self.max_requests:
                retry_after = window.started_at + self.window_seconds - now
                return RateLimitDecision(
                    allowed=False,
                    remaining=0,
                    retry_after=max(1, math.ceil(retry_after)),
                )

            window.count += 1
            return RateLimitDecision(
                allowed=True, remaining=self.max_requests - window.count
            )

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < _SWEEP_INTERVAL_SECONDS:
            return
        self._last_sweep = now
        expired = [
            key
            for key, window in self._windows.items()
            if now - window.started_at > self.window_seconds
        ]
        for key in expired:
            del self._windows[key]


def _normalize_address(address: Optional[str]) -> str:
    if not address:
        return "unknown"
    address = address.strip().lower()
    # IPv4-mapped IPv6 (::ffff:10.0.0.1) counts as the IPv4 address
    if address.startswith("::ffff:"):
        address = address[len("::ffff:"):]
    return address or "unknown"


def rate_limit_key(secret_header: Optional[str], client_address: Optional[str]) -> str:
    """Derive the limiter key for a request."""
    if secret_header:
        return f"secret:{secret_header}"
    return f"ip:{_normalize_address(client_address)}"
