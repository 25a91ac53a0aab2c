"""Centralized settings for the keygate service.

Uses pydantic-settings to load from environment variables (prefixed KEYGATE_)
with defaults matching the per-package dataclass configs.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """keygate settings loaded from environment variables."""

    # --- Store ---
    store_backend: str = "memory"  # "memory" or "sql"
    database_url: str = "sqlite:///./keygate.db"
    database_echo: bool = False

    # --- Rate limiting ---
    rate_window_seconds: int = 60
    anonymous_rate_limit: int = 60

    # --- Billing ---
    billing_threshold: float = 1000.0
    monitor_workers: int = 2  # 0 runs threshold checks inline

    # --- API keys ---
    api_key_prefix: str = "pk_"

    # --- Logging ---
    log_level: str = "INFO"
    log_format: str = "json"
    service_name: str = "keygate"

    model_config = {
        "env_prefix": "KEYGATE_",
        "env_file": ".env",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton."""
    return Settings()
