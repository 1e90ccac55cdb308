from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import AnyUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        case_sensitive=False,
        extra="ignore",
    )

    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_TIMEOUT_SECONDS: float = Field(default=60.0, gt=0)

    GOOGLE_SEARCH_API_KEY: str = ""
    GOOGLE_SEARCH_ENGINE_ID: str = "70abbb6c38bda4a32"
    IMAGE_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)

    GENERATION_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    GENERATION_BASE_DELAY_SECONDS: float = Field(default=1.0, ge=0)

    STORAGE_BACKEND: Literal["local", "memory", "supabase"] = "local"
    STORAGE_DIR: str = "data/recipes"
    SUPABASE_URL: Optional[AnyUrl] = None
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    SUPABASE_TABLE: str = "recipe_collections"

    APP_ENV: str = "local"
    LOG_LEVEL: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
