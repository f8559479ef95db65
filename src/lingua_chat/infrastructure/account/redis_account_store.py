"""Profile metadata and sign-in markers kept in Redis hashes."""
from __future__ import annotations

import json
import logging
from typing import Any

import redis.asyncio as aioredis

from lingua_chat.application.exceptions import BackendUnavailableError

logger = logging.getLogger(__name__)


class RedisAccountStore:
    """Implements application.ports.account.AccountStore."""

    def __init__(self, redis: aioredis.Redis, *, prefix: str = "lingua_chat") -> None:
        self._redis = redis
        self._prefix = prefix

    def _profile_key(self, email: str) -> str:
        return f"{self._prefix}:profile:{email}"

    def _session_key(self, email: str) -> str:
        return f"{self._prefix}:session:{email}"

    async def sign_in(self, email: str) -> None:
        try:
            await self._redis.set(self._session_key(email), "1")
        except (aioredis.RedisError, OSError) as exc:
            raise BackendUnavailableError(str(exc)) from exc

    async def sign_out(self, email: str) -> None:
        try:
            await self._redis.delete(self._session_key(email))
        except (aioredis.RedisError, OSError) as exc:
            raise BackendUnavailableError(str(exc)) from exc
        logger.info("Signed out %s", email)

    async def get_metadata(self, email: str) -> dict[str, Any] | None:
        try:
            raw = await self._redis.hgetall(self._profile_key(email))
        except (aioredis.RedisError, OSError) as exc:
            raise BackendUnavailableError(str(exc)) from exc
        if not raw:
            return None
        return {key: json.loads(value) for key, value in raw.items()}

    async def update_metadata(self, email: str, updates: dict[str, Any]) -> dict[str, Any]:
        mapping = {key: json.dumps(value) for key, value in updates.items()}
        try:
            if mapping:
                await self._redis.hset(self._profile_key(email), mapping=mapping)
        except (aioredis.RedisError, OSError) as exc:
            raise BackendUnavailableError(str(exc)) from exc
        return await self.get_metadata(email) or {}
