"""Fixed-window rate limiting keyed by client fingerprint."""

from __future__ import annotations

import hashlib
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict

from fastapi import Request
from loguru import logger
from redis.asyncio import Redis

from foodhub_api.core.settings import Settings
from foodhub_api.services.rate_limit.stores import (
    InMemoryRateLimitStore,
    RateLimitStore,
    RedisRateLimitStore,
)

STRICT = "strict"
STANDARD = "standard"
AUTH = "auth"

Clock = Callable[[], float]


@dataclass(frozen=True)
class RateLimitPolicy:
    name: str
    max_requests: int
    window_seconds: float


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: int

    def headers(self) -> dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(math.ceil(self.reset_at))),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after_seconds)
        return headers


def client_fingerprint(request: Request) -> str:
    """Best-effort client identity: forwarded IP plus user agent.

    Headers are caller controlled, so this slows abuse down but is not an
    authentication boundary.
    """

    forwarded = request.headers.get("x-forwarded-for")
    ip = forwarded.split(",")[0].strip() if forwarded else ""
    if not ip:
        ip = (request.headers.get("x-real-ip") or "").strip()
    if not ip and request.client is not None:
        ip = request.client.host
    user_agent = request.headers.get("user-agent", "")
    return f"{ip or 'unknown'}-{user_agent}"


class RateLimiter:
    """Applies one policy against a shared counter store."""

    def __init__(self, store: RateLimitStore, policy: RateLimitPolicy, *, clock: Clock = time.time) -> None:
        self._store = store
        self.policy = policy
        self._clock = clock

    def _key(self, fingerprint: str) -> str:
        digest = hashlib.sha256(fingerprint.encode("utf-8")).hexdigest()
        return f"{self.policy.name}:{digest}"

    async def check(self, fingerprint: str) -> RateLimitDecision:
        now = self._clock()
        allowed, window = await self._store.hit(
            self._key(fingerprint),
            max_requests=self.policy.max_requests,
            window_seconds=self.policy.window_seconds,
            now=now,
        )
        remaining = max(0, self.policy.max_requests - window.count) if allowed else 0
        return RateLimitDecision(
            allowed=allowed,
            limit=self.policy.max_requests,
            remaining=remaining,
            reset_at=window.reset_at,
            retry_after_seconds=max(0, int(math.ceil(window.reset_at - now))),
        )

    async def remaining(self, fingerprint: str) -> int:
        window = await self._store.get(self._key(fingerprint), now=self._clock())
        if window is None:
            return self.policy.max_requests
        return max(0, self.policy.max_requests - window.count)

    async def reset(self, fingerprint: str) -> None:
        await self._store.reset(self._key(fingerprint))


def build_policies(config: Settings) -> Dict[str, RateLimitPolicy]:
    return {
        STRICT: RateLimitPolicy(
            STRICT, config.rate_limit_strict_max_requests, config.rate_limit_strict_window_seconds
        ),
        STANDARD: RateLimitPolicy(
            STANDARD, config.rate_limit_standard_max_requests, config.rate_limit_standard_window_seconds
        ),
        AUTH: RateLimitPolicy(AUTH, config.rate_limit_auth_max_requests, config.rate_limit_auth_window_seconds),
    }


class RateLimiterRegistry:
    """Named limiters sharing one store, held on ``app.state``."""

    def __init__(
        self,
        store: RateLimitStore,
        policies: Dict[str, RateLimitPolicy],
        *,
        clock: Clock = time.time,
    ) -> None:
        self.store = store
        self._limiters = {name: RateLimiter(store, policy, clock=clock) for name, policy in policies.items()}

    @classmethod
    def from_settings(cls, config: Settings, *, redis_client: Redis | None = None) -> "RateLimiterRegistry":
        store: RateLimitStore
        if config.rate_limit_backend == "redis":
            store = RedisRateLimitStore(
                redis_client
                or Redis.from_url(config.redis_url, encoding="utf-8", decode_responses=True)
            )
        else:
            store = InMemoryRateLimitStore()
        logger.info("Configured rate limiting", backend=config.rate_limit_backend)
        return cls(store, build_policies(config))

    def get(self, name: str) -> RateLimiter:
        try:
            return self._limiters[name]
        except KeyError as exc:
            raise KeyError(f"Unknown rate limit policy: {name}") from exc


__all__ = [
    "AUTH",
    "STANDARD",
    "STRICT",
    "RateLimitDecision",
    "RateLimitPolicy",
    "RateLimiter",
    "RateLimiterRegistry",
    "build_policies",
    "client_fingerprint",
]
