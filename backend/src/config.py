from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Upstream completion backend (OpenAI-compatible, e.g. LM Studio)
    upstream_url: str = "http://localhost:1234/v1"
    upstream_timeout_seconds: float = 30.0
    upstream_max_retries: int = 2
    upstream_temperature: float = 0.7

    # Relay
    relay_channel_size: int = 64
    history_limit: int = 10

    # Pocketbase
    pocketbase_url: str = "http://pocketbase:8090"
    pocketbase_admin_email: Optional[str] = None
    pocketbase_admin_password: Optional[str] = None

    # App settings
    log_level: str = "INFO"

    @field_validator("upstream_url", "pocketbase_url")
    @classmethod
    def url_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("URL settings are required and cannot be empty")
        return v

    @field_validator("upstream_timeout_seconds")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("UPSTREAM_TIMEOUT_SECONDS must be positive")
        return v

    @field_validator("upstream_max_retries")
    @classmethod
    def retries_not_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("UPSTREAM_MAX_RETRIES cannot be negative")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
