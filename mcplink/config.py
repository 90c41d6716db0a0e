from __future__ import annotations

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str | None = None
    data_dir: str = "/data"
    log_level: str = "info"
    cors_origins: str = "*"
    secrets_key: str | None = None
    allow_insecure_secrets: bool = False
    mcp_connect_timeout_ms: int = 30000
    mcp_tools_timeout_ms: int = 10000
    brave_api_key: str | None = None
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
