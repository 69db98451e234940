"""Library configuration via environment variables."""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Settings loaded from SAFER_HTTPX_* environment variables."""

    # Validation policy
    IGNORE_ERRORS: bool = False

    # Transport
    TIMEOUT_SECONDS: float = 10.0

    # Logging
    DEBUG: bool = False
    LOG_LEVEL: str = "info"
    LOG_PAYLOADS: bool = False  # Payloads may hold user data

    model_config = {"env_prefix": "SAFER_HTTPX_", "env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
