from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./foodhub.db"
    redis_url: str = "redis://localhost:6379/0"
    currency: str = "THB"

    # Rate limiting
    rate_limit_backend: Literal["memory", "redis"] = "memory"
    rate_limit_sweep_enabled: bool = True
    rate_limit_sweep_interval_seconds: int = 5 * 60
    rate_limit_strict_max_requests: int = 10
    rate_limit_strict_window_seconds: int = 60
    rate_limit_standard_max_requests: int = 60
    rate_limit_standard_window_seconds: int = 60
    rate_limit_auth_max_requests: int = 5
    rate_limit_auth_window_seconds: int = 15 * 60

    # Promotions
    promotion_demo_seed_enabled: bool = False

    # Ledger history windows
    loyalty_history_limit: int = 50
    wallet_history_limit: int = 50
    wallet_topup_history_limit: int = 10


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
