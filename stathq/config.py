"""Application settings loaded from the environment."""
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_NAME: str = "Stat HQ"
    APP_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = "sqlite:///./stats.db"

    SECRET_KEY: str = "dev_key_change_this_later"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480

    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # 0=Monday .. 6=Sunday. The business week runs anchor, +1, +4, +5, +6.
    WEEK_ENDING_WEEKDAY: int = 3
    RECENT_WEEKS_DEFAULT: int = 12

    # Unknown short codes resolve to placeholder personal/number metadata when enabled.
    LENIENT_SHORT_ID_LOOKUP: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()
