import os
import secrets
from typing import Literal

from pydantic import BaseModel, Field


class Settings(BaseModel):
    app_env: Literal["development", "test", "production"] = "development"
    host: str = "0.0.0.0"
    port: int = 5000
    database_url: str = "sqlite:///./data/productitask.db"
    session_secret: str = Field(default_factory=lambda: secrets.token_hex(32), min_length=1)
    session_max_age: int = 24 * 60 * 60
    cors_origin: str = "*"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


def load_settings() -> Settings:
    """Build settings from environment variables, ignoring unset ones."""
    env = {
        "app_env": os.getenv("APP_ENV"),
        "host": os.getenv("HOST"),
        "port": os.getenv("PORT"),
        "database_url": os.getenv("DATABASE_URL"),
        "session_secret": os.getenv("SESSION_SECRET"),
        "session_max_age": os.getenv("SESSION_MAX_AGE"),
        "cors_origin": os.getenv("CORS_ORIGIN"),
        "log_level": os.getenv("LOG_LEVEL", "").upper() or None,
    }
    return Settings(**{k: v for k, v in env.items() if v is not None})
