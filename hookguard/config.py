from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal

class Settings(BaseSettings):
    ENV: str = "dev"
    SERVICE_PORT: int = 3000
    MAX_EVENT_SIZE: int = 65536
    LOG_JSON: bool = True
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    # Signature verification (empty secret disables it)
    WEBHOOK_SECRET: str = ""
    # Rate limiting
    RATE_LIMIT_MAX: int = Field(default=100, ge=1)
    RATE_LIMIT_WINDOW_MS: int = Field(default=60000, ge=1)
    RATE_LIMIT_PRUNE_THRESHOLD: int = Field(default=10000, ge=0)  # 0 keeps every record
    # Storage
    MAX_WEBHOOKS_STORAGE: int = Field(default=10000, ge=1)
    CORS_ORIGIN: str = "*"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
