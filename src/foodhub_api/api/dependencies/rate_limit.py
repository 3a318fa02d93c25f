"""Rate-limit guard for individual routes."""

from __future__ import annotations

from fastapi import Depends, Request, Response
from loguru import logger

from foodhub_api.core.errors import RateLimitExceededError
from foodhub_api.services.rate_limit import RateLimitDecision, RateLimiterRegistry, client_fingerprint


def rate_limit(policy_name: str) -> Depends:
    """Dependency rejecting callers that exhausted ``policy_name``'s window with 429."""

    async def enforce(request: Request, response: Response) -> RateLimitDecision:
        registry: RateLimiterRegistry = request.app.state.rate_limiters
        limiter = registry.get(policy_name)
        decision = await limiter.check(client_fingerprint(request))
        if not decision.allowed:
            logger.warning(
                "Rate limit exceeded",
                policy=policy_name,
                path=request.url.path,
                retry_after=decision.retry_after_seconds,
            )
            raise RateLimitExceededError(
                "Too many requests. Please try again later.",
                headers=decision.headers(),
            )
        response.headers.update(decision.headers())
        return decision

    return Depends(enforce)
