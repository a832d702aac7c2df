"""
Fixed-window in-memory rate limiter.

State lives in the worker process, so limits are per worker.
"""
from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass
class _Window:
    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float


class RateLimiter:
    def __init__(self, clock: Callable[[], float] = time.monotonic, *, sweep_interval: float = 60.0):
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval

    def size(self) -> int:
        return len(self._windows)

    def _drop_expired(self, now: float) -> int:
        expired = [k for k, w in self._windows.items() if w.reset_at <= now]
        for k in expired:
            del self._windows[k]
        self._next_sweep = now + self._sweep_interval
        return len(expired)

    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        """Count one request for ``key`` and report whether it is within ``limit``."""
        now = self._clock()
        with self._lock:
            # at most one sweep per sweep_interval
            if now >= self._next_sweep:
                self._drop_expired(now)
            w = self._windows.get(key)
            if w is None or w.reset_at <= now:
                w = _Window(count=0, reset_at=now + window_seconds)
                self._windows[key] = w
            w.count += 1
            allowed = w.count <= limit
            return RateLimitResult(allowed=allowed, remaining=max(0, limit - w.count), reset_at=w.reset_at)

    def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)

    def cleanup(self) -> int:
        """Drop expired windows. Returns how many were dropped."""
        now = self._clock()
        with self._lock:
            return self._drop_expired(now)

    def clear(self) -> None:
        with self._lock:
            self._windows.clear()


limiter = RateLimiter()
