"""Background workers."""

from .rate_limit_sweeper import RateLimitSweeper  # noqa: F401
