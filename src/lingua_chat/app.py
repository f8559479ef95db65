from __future__ import annotations

import logging
from types import TracebackType
from typing import Self

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncEngine

from lingua_chat.application.exceptions import ConfigurationMissingError
from lingua_chat.application.ports.translator import Translator
from lingua_chat.config import Settings, settings as default_settings
from lingua_chat.domain.entities.user import User
from lingua_chat.infrastructure.account.redis_account_store import RedisAccountStore
from lingua_chat.infrastructure.db.session import build_engine, build_session_factory
from lingua_chat.infrastructure.store.postgres_store import PostgresRedisStore
from lingua_chat.infrastructure.translation.llm_translator import LLMTranslator
from lingua_chat.services.account_service import AccountService
from lingua_chat.services.chat_session import ChatSession
from lingua_chat.services.chat_sync import ChatSync

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=level or default_settings.LOG_LEVEL, format=LOG_FORMAT)


def build_translator(settings: Settings) -> Translator | None:
    """Return the translation gateway, or None when it is not configured."""
    try:
        return LLMTranslator.from_settings(settings)
    except ConfigurationMissingError as exc:
        logger.warning("Translation disabled: %s", exc.detail)
        return None


class ChatClient:
    """Composition root: wires Redis, PostgreSQL, translation and services.

    Missing credentials disable the affected feature instead of failing:
    without a translation key messages are shown untranslated, without
    database credentials ``sync`` is None and ``open_session`` raises.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or default_settings
        self.redis: aioredis.Redis | None = None
        self.engine: AsyncEngine | None = None
        self.sync: ChatSync | None = None
        self.accounts = AccountService(None, default_language=self.settings.DEFAULT_LANGUAGE)
        self.translator: Translator | None = None

    async def start(self) -> None:
        self.redis = aioredis.from_url(self.settings.REDIS_URL, decode_responses=True)
        logger.info("Redis connection pool created")
        self.accounts = AccountService(
            RedisAccountStore(self.redis), default_language=self.settings.DEFAULT_LANGUAGE,
        )
        self.translator = build_translator(self.settings)

        try:
            self.engine = build_engine(self.settings)
        except ConfigurationMissingError as exc:
            logger.warning("Message sync disabled: %s", exc.detail)
            return

        store = PostgresRedisStore(
            build_session_factory(self.engine),
            self.redis,
            room_channel_prefix=self.settings.ROOM_CHANNEL_PREFIX,
            system_channel=self.settings.SYSTEM_CHANNEL,
        )
        self.sync = ChatSync(store, history_limit=self.settings.HISTORY_LIMIT)
        await self.sync.open()

    async def close(self) -> None:
        if self.sync is not None:
            await self.sync.close()
            self.sync = None
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None
            logger.info("Redis connection pool closed")

    async def open_session(self, user: User) -> ChatSession:
        if self.sync is None:
            raise ConfigurationMissingError("Message sync is not configured")
        session = ChatSession(self.sync, user, translator=self.translator)
        await session.start()
        return session

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
