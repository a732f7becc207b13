from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Runtime configuration for the Gita Reflection API."""

    ANTHROPIC_API_KEY: str = ""
    MODEL_NAME: str = "claude-sonnet-4-20250514"
    AI_MAX_TOKENS: int = 1024
    AI_TIMEOUT_SECONDS: float = 30.0

    # Progress added per turn when the model omits progressPercentage
    DEFAULT_PROGRESS_STEP: int = 20
    ALLOW_VERSE_OVERWRITE: bool = False

    # Empty DATABASE_URL means in-memory storage
    DATABASE_URL: str = ""
    DATABASE_NAME: str = "gita_reflection"
    DATABASE_TIMEOUT_MS: int = 3000

    CORS_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"
    PORT: int = 8000

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    return Settings()
