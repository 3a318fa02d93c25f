"""Rate limiting exports."""

from .limiter import (  # noqa: F401
    AUTH,
    STANDARD,
    STRICT,
    RateLimitDecision,
    RateLimitPolicy,
    RateLimiter,
    RateLimiterRegistry,
    build_policies,
    client_fingerprint,
)
from .stores import (  # noqa: F401
    InMemoryRateLimitStore,
    RateLimitStore,
    RateLimitWindow,
    RedisRateLimitStore,
)
