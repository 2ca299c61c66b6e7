# habit_tracker/config.py
from pydantic_settings import BaseSettings
from typing import Optional
from pydantic import Field

class Settings(BaseSettings):
    SECRET_KEY: str = Field("change-me-in-production")
    ALGORITHM: str = Field("HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(30)

    DATABASE_URL: str = Field("sqlite+aiosqlite:///./habits.db")
    SQLALCHEMY_DATABASE_URL: Optional[str] = None
    SQL_ECHO: bool = Field(False)

    LOG_LEVEL: str = Field("INFO")

    # Used when the client does not send X-Timezone
    DEFAULT_TIMEZONE: str = Field("UTC")

    STATS_WINDOW_DAYS: int = Field(30)
    CALENDAR_MAX_DAYS: int = Field(366)
    OFFLINE_REPLAY_MAX_DAYS: int = Field(30)
    RECOMMENDATION_LIMIT: int = Field(3)
    RECENT_COMPLETIONS_LIMIT: int = Field(30)

    model_config = {
        "env_file": ".env",
        "extra": "allow",
    }

    @property
    def effective_database_url(self) -> str:
        url = self.SQLALCHEMY_DATABASE_URL or self.DATABASE_URL or "sqlite+aiosqlite:///./habits.db"
        # Ensure asyncpg is used
        if url.startswith("postgresql://") and "+asyncpg" not in url:
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

settings = Settings()
