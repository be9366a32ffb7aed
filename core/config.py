# core/config.py
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env", extra="ignore")

    # Empty key means "not configured"; readiness reports it and the service handle refuses calls.
    GEMINI_API_KEY: str = Field(default="")

    GEMINI_VISION_MODEL: str = Field(default="gemini-2.5-flash")
    GEMINI_RECIPE_MODEL: str = Field(default="gemini-2.5-pro")
    GEMINI_TRANSLATE_MODEL: str = Field(default="gemini-2.5-flash")
    GEMINI_IMAGE_MODEL: str = Field(default="imagen-4.0-generate-001")
    GEMINI_TEMP: float = Field(default=0.6, gt=0.0, le=2.0)

    GEMINI_CACHE_MAXSIZE: int = Field(default=128)
    GEMINI_CACHE_TTL: int = Field(default=3600)  # TTL in seconds (e.g., 1 hour)

    RECIPE_BATCH_SIZE: int = Field(default=4, ge=1, le=10)
    IMAGE_PACING_SECONDS: float = Field(default=1.5, ge=0.0)
    MAX_SERVINGS_FALLBACK: int = Field(default=20, ge=1)
    MAX_INGREDIENTS: int = Field(default=50, ge=1)

    CORS_ORIGINS: list[str] = Field(
        default=[
            "http://localhost:3000",  # Common React dev port
            "http://localhost:5173",  # Common Vite dev port
        ]
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
