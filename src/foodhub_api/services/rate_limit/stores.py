"""Counter backends for fixed-window rate limiting."""

from __future__ import annotations

import math
from dataclasses import dataclass
from threading import Lock
from typing import Dict, Protocol

from redis.asyncio import Redis


@dataclass
class RateLimitWindow:
    """Request count inside the window ending at ``reset_at`` (epoch seconds)."""

    count: int
    reset_at: float


class RateLimitStore(Protocol):
    async def hit(
        self,
        key: str,
        *,
        max_requests: int,
        window_seconds: float,
        now: float,
    ) -> tuple[bool, RateLimitWindow]:
        """Register a request and report whether it fits in the current window."""

    async def get(self, key: str, *, now: float) -> RateLimitWindow | None:
        """Return the live window for ``key`` or ``None`` when absent or expired."""

    async def reset(self, key: str) -> None:
        """Forget the window for ``key``."""

    async def sweep(self, *, now: float) -> int:
        """Drop expired windows and return how many were removed."""


class InMemoryRateLimitStore:
    """Process-local windows; only suitable for single-instance deployments."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._windows: Dict[str, RateLimitWindow] = {}

    async def hit(
        self,
        key: str,
        *,
        max_requests: int,
        window_seconds: float,
        now: float,
    ) -> tuple[bool, RateLimitWindow]:
        with self._lock:
            window = self._windows.get(key)
            if window is None or now > window.reset_at:
                window = RateLimitWindow(count=1, reset_at=now + window_seconds)
                self._windows[key] = window
                return True, RateLimitWindow(window.count, window.reset_at)

            if window.count >= max_requests:
                return False, RateLimitWindow(window.count, window.reset_at)

            window.count += 1
            return True, RateLimitWindow(window.count, window.reset_at)

    async def get(self, key: str, *, now: float) -> RateLimitWindow | None:
        with self._lock:
            window = self._windows.get(key)
            if window is None or now > window.reset_at:
                return None
            return RateLimitWindow(window.count, window.reset_at)

    async def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)

    async def sweep(self, *, now: float) -> int:
        with self._lock:
            expired = [key for key, window in self._windows.items() if window.reset_at < now]
            for key in expired:
                del self._windows[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)


class RedisRateLimitStore:
    """Windows shared across instances through Redis counters with TTLs."""

    def __init__(self, redis_client: Redis, *, prefix: str = "ratelimit") -> None:
        self._redis = redis_client
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    async def hit(
        self,
        key: str,
        *,
        max_requests: int,
        window_seconds: float,
        now: float,
    ) -> tuple[bool, RateLimitWindow]:
        redis_key = self._key(key)
        window_ms = int(math.ceil(window_seconds * 1000))
        count = int(await self._redis.incr(redis_key))
        if count == 1:
            await self._redis.pexpire(redis_key, window_ms)

        ttl_ms = int(await self._redis.pttl(redis_key))
        if ttl_ms < 0:
            # Counter lost its expiry (e.g. process died between INCR and PEXPIRE).
            await self._redis.pexpire(redis_key, window_ms)
            ttl_ms = window_ms

        reset_at = now + ttl_ms / 1000
        if count > max_requests:
            return False, RateLimitWindow(count=max_requests, reset_at=reset_at)
        return True, RateLimitWindow(count=count, reset_at=reset_at)

    async def get(self, key: str, *, now: float) -> RateLimitWindow | None:
        redis_key = self._key(key)
        raw = await self._redis.get(redis_key)
        if raw is None:
            return None
        ttl_ms = int(await self._redis.pttl(redis_key))
        if ttl_ms <= 0:
            return None
        return RateLimitWindow(count=int(raw), reset_at=now + ttl_ms / 1000)

    async def reset(self, key: str) -> None:
        await self._redis.delete(self._key(key))

    async def sweep(self, *, now: float) -> int:
        return 0


__all__ = ["InMemoryRateLimitStore", "RateLimitStore", "RateLimitWindow", "RedisRateLimitStore"]
