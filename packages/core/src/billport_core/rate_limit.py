"""Expiring key/value store and fixed-window rate limiter.

Both take an injectable ``clock`` returning seconds (``time.monotonic`` by
default) so expiry can be driven deterministically in tests.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

import structlog

from billport_core.exceptions import ValidationError

logger = structlog.get_logger()

T = TypeVar("T")
Clock = Callable[[], float]


class TTLStore(Generic[T]):
    """Thread-safe mapping whose entries expire ``ttl_seconds`` after being set.

    Expired entries are removed on access, by ``purge()`` and by a sweep
    that ``set`` runs at most once per ``ttl_seconds``.
    """

    def __init__(self, ttl_seconds: float, clock: Clock = time.monotonic):
        if ttl_seconds <= 0:
            raise ValidationError(
                "ttl_seconds must be positive",
                field="ttl_seconds",
                value=ttl_seconds,
                constraint="> 0",
            )
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[T, float]] = {}
        self._next_sweep = 0.0
        self._lock = threading.Lock()

    def set(self, key: str, value: T, ttl_seconds: Optional[float] = None) -> None:
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
                self._next_sweep = now + self.ttl_seconds
            self._entries[key] = (value, now + (ttl_seconds or self.ttl_seconds))

    def get(self, key: str, default: Optional[T] = None) -> Optional[T]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return default
            return value

    def expires_in(self, key: str) -> float:
        """Seconds until ``key`` expires, 0 if absent or already expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return 0.0
            return max(0.0, entry[1] - self._clock())

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def purge(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock()
        with self._lock:
            return self._sweep(now)

    def _sweep(self, now: float) -> int:
        expired = [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        self.purge()
        with self._lock:
            return len(self._entries)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    resets_in: float


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Allow at most ``max_requests`` per key in each fixed window.

    The window opens on a key's first request and resets ``window_seconds``
    later. Denied requests do not consume quota. Keys whose window has
    ended are swept at most once per ``window_seconds``.
    """

    def __init__(self, max_requests: int, window_seconds: float, clock: Clock = time.monotonic):
        if max_requests < 1:
            raise ValidationError(
                "max_requests must be at least 1",
                field="max_requests",
                value=max_requests,
                constraint=">= 1",
            )
        if window_seconds <= 0:
            raise ValidationError(
                "window_seconds must be positive",
                field="window_seconds",
                value=window_seconds,
                constraint="> 0",
            )
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._next_sweep = 0.0
        self._lock = threading.Lock()

    def check(self, key: str) -> RateLimitResult:
        """Record a request for ``key`` and report whether it is allowed."""
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
                self._next_sweep = now + self.window_seconds
            window = self._windows.get(key)
            if window is None or now >= window.reset_at:
                self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
                return RateLimitResult(True, self.max_requests - 1, self.window_seconds)

            if window.count >= self.max_requests:
                logger.info("rate_limit_exceeded", key=key, resets_in=window.reset_at - now)
                return RateLimitResult(False, 0, window.reset_at - now)

            window.count += 1
            return RateLimitResult(True, self.max_requests - window.count, window.reset_at - now)

    def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)

    def purge(self) -> int:
        """Forget every key whose window has ended."""
        now = self._clock()
        with self._lock:
            return self._sweep(now)

    def _sweep(self, now: float) -> int:
        ended = [k for k, w in self._windows.items() if now >= w.reset_at]
        for key in ended:
            del self._windows[key]
        return len(ended)
