"""
Configuration module - loads all env vars using pydantic-settings.
This is the SINGLE SOURCE OF TRUTH for all config values.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Entity store backend: "mongo" talks to MongoDB directly,
    # "http" talks to the university service REST API
    store_backend: str = "mongo"

    # MongoDB
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "university"

    # University service (JSON over HTTP)
    store_base_url: str = "http://localhost:8088/api"
    store_api_token: str = ""

    # Every store call is bounded by this timeout
    store_timeout_seconds: float = 5.0

    # Retry policy for transient store failures
    store_retry_attempts: int = 3
    store_retry_backoff_seconds: float = 0.2
    store_retry_max_delay_seconds: float = 2.0

    # 1 = sequential counter-entity updates
    reconcile_max_workers: int = 1

    # App
    log_level: str = "INFO"
    debug: bool = False

    @property
    def store_timeout_ms(self) -> int:
        """Timeout in milliseconds (pymongo expects ms)"""
        return int(self.store_timeout_seconds * 1000)

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
