"""In-memory token-bucket limiter for inbound transport messages."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable


@dataclass
class TokenBucketState:
    tokens: float
    last_refill: float  # clock seconds


class TokenBucketLimiter:
    """Token bucket with continuous refill: ``capacity`` tokens per ``window_ms``.

    One instance belongs to exactly one transport; it is not safe to share
    across connections or threads.
    """

    def __init__(
        self,
        capacity: int,
        window_ms: int,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        if window_ms <= 0:
            raise ValueError(f"window_ms must be positive, got {window_ms}")
        self._capacity = capacity
        self._window_ms = window_ms
        self._rate_per_ms = capacity / window_ms
        self._clock = clock
        self._state = TokenBucketState(tokens=float(capacity), last_refill=clock())

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def window_ms(self) -> int:
        return self._window_ms

    @property
    def tokens(self) -> float:
        """Current token count without refilling."""
        return self._state.tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed_ms = (now - self._state.last_refill) * 1000.0
        if elapsed_ms > 0:
            self._state.tokens = min(self._state.tokens + elapsed_ms * self._rate_per_ms, float(self._capacity))
            self._state.last_refill = now

    def try_acquire(self) -> bool:
        """Take one token if available. Never blocks."""
        self._refill()
        if self._state.tokens >= 1:
            self._state.tokens -= 1
            return True
        return False
