from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings

from lingua_chat.application.exceptions import ConfigurationMissingError


class Settings(BaseSettings):
    POSTGRES_USER: str = ""
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = ""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_RECYCLE: int = 300

    REDIS_URL: str = "redis://localhost:6379/0"
    ROOM_CHANNEL_PREFIX: str = "room_db_"
    SYSTEM_CHANNEL: str = "lingua_chat_global_system"

    HISTORY_LIMIT: int = 50

    TRANSLATION_API_KEY: str | None = None
    TRANSLATION_MODEL: str = "gemini/gemini-2.5-flash"
    TRANSLATION_TEMPERATURE: float = 0.1
    TRANSLATION_MAX_TOKENS: int = 1000
    TRANSLATION_TIMEOUT_SECONDS: float = 20.0

    DEFAULT_LANGUAGE: str = "en"
    LOG_LEVEL: str = "INFO"

    @property
    def sync_configured(self) -> bool:
        return bool(self.POSTGRES_USER and self.POSTGRES_DB)

    @property
    def translation_configured(self) -> bool:
        return bool(self.TRANSLATION_API_KEY)

    @property
    def database_url(self) -> str:
        if not self.sync_configured:
            raise ConfigurationMissingError(
                "POSTGRES_USER and POSTGRES_DB must be set to enable message sync"
            )
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
