"""RemoteStore backed by PostgreSQL (rows) and Redis Pub/Sub (live + system channels)."""
from __future__ import annotations

import logging
from typing import Any

import redis.asyncio as aioredis
from sqlalchemy import insert, select
from sqlalchemy.exc import DBAPIError, ProgrammingError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lingua_chat.application.exceptions import (
    BackendUnavailableError,
    SchemaMissingError,
    WriteRejectedError,
)
from lingua_chat.application.ports.store import RowCallback
from lingua_chat.infrastructure.bus.redis_pubsub import (
    OnEventCallback,
    RedisPubSubPublisher,
    RedisPubSubSubscriber,
)
from lingua_chat.infrastructure.bus.serializer import ROW_INSERTED, SYSTEM_EVENT
from lingua_chat.infrastructure.db.mappers import message as mapper
from lingua_chat.infrastructure.db.models.message import MessageModel

logger = logging.getLogger(__name__)

_UNDEFINED_TABLE = "42P01"


def _is_missing_relation(exc: ProgrammingError) -> bool:
    if getattr(exc.orig, "sqlstate", None) == _UNDEFINED_TABLE:
        return True
    return "does not exist" in str(exc.orig)


class PostgresRedisStore:
    """Implements application.ports.store.RemoteStore."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        redis: aioredis.Redis,
        *,
        room_channel_prefix: str,
        system_channel: str,
    ) -> None:
        self._session_factory = session_factory
        self._redis = redis
        self._publisher = RedisPubSubPublisher(redis)
        self._room_channel_prefix = room_channel_prefix
        self._system_channel = system_channel

    def room_channel(self, room_id: str) -> str:
        return f"{self._room_channel_prefix}{room_id}"

    async def insert_message(self, row: dict[str, Any]) -> None:
        stmt = insert(MessageModel).values(**row).returning(MessageModel)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                persisted = mapper.model_to_row(result.scalar_one())
                await session.commit()
        except ProgrammingError as exc:
            if _is_missing_relation(exc):
                raise WriteRejectedError("messages table is not provisioned") from exc
            raise WriteRejectedError(str(exc.orig)) from exc
        except (DBAPIError, OSError) as exc:
            raise WriteRejectedError(str(exc)) from exc

        try:
            await self._publisher.publish(
                self.room_channel(persisted["room_id"]), ROW_INSERTED, persisted,
            )
        except (aioredis.RedisError, OSError):
            # The row is stored; listeners will see it on the next history fetch.
            logger.exception("Failed to fan out message %s", persisted["id"])

    async def query_messages(self, room_id: str, *, limit: int) -> list[dict[str, Any]]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.room_id == room_id)
            .order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
            .limit(limit)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                models = result.scalars().all()
        except ProgrammingError as exc:
            if _is_missing_relation(exc):
                raise SchemaMissingError("messages table is not provisioned") from exc
            raise BackendUnavailableError(str(exc.orig)) from exc
        except (DBAPIError, OSError) as exc:
            raise BackendUnavailableError(str(exc)) from exc
        return [mapper.model_to_row(m) for m in reversed(models)]

    async def subscribe_room(self, room_id: str, callback: RowCallback) -> RedisPubSubSubscriber:
        async def _on_event(event_type: str, data: dict[str, Any]) -> None:
            if event_type == ROW_INSERTED:
                await callback(data)

        return await self._subscribe(self.room_channel(room_id), _on_event)

    async def subscribe_system(self, callback: RowCallback) -> RedisPubSubSubscriber:
        async def _on_event(event_type: str, data: dict[str, Any]) -> None:
            if event_type == SYSTEM_EVENT:
                await callback(data)

        return await self._subscribe(self._system_channel, _on_event)

    async def broadcast_system(self, payload: dict[str, Any]) -> None:
        try:
            await self._publisher.publish(self._system_channel, SYSTEM_EVENT, payload)
        except (aioredis.RedisError, OSError) as exc:
            raise BackendUnavailableError(str(exc)) from exc

    async def _subscribe(self, channel: str, on_event: OnEventCallback) -> RedisPubSubSubscriber:
        subscriber = RedisPubSubSubscriber(self._redis, channel, on_event)
        try:
            await subscriber.start()
        except (aioredis.RedisError, OSError) as exc:
            raise BackendUnavailableError(f"cannot subscribe to {channel}: {exc}") from exc
        return subscriber
