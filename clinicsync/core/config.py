from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    project_name: str = "Clinic Appointment Sync"
    api_base_url: str = Field(
        default="http://localhost:8000/api/v1",
        description="Base URL of the clinic REST backend",
    )
    request_timeout_seconds: float = 30.0
    search_debounce_ms: int = 500
    search_min_length: int = 1
    default_page_size: int = 10
    max_page_size: int = 100
    cache_lifetime_seconds: float = 60 * 2  # 2 minutes
    cache_retention_seconds: float = 60 * 5  # 5 minutes
    retry_attempts: int = 3
    retry_base_delay_seconds: float = 1.0
    rollback_failed_mutations: bool = False
    log_level: str = "INFO"

    class Config:
        env_prefix = "CLINICSYNC_"
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
