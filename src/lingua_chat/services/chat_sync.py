"""Sync adapter: one live room subscription at a time over a RemoteStore."""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Any, Callable

from pydantic import ValidationError as PydanticValidationError

from lingua_chat.application.dto.message import MessageDraft, MessageRow
from lingua_chat.application.ports.store import RemoteStore, Subscription
from lingua_chat.domain.entities.message import Message
from lingua_chat.domain.events.system_event import SystemEvent

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Message], None]
SystemEventHandler = Callable[[SystemEvent], None]
Unsubscribe = Callable[[], None]

DEFAULT_HISTORY_LIMIT = 50


class ChatSync:
    def __init__(self, store: RemoteStore, *, history_limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        self._store = store
        self._history_limit = history_limit
        self._lock = asyncio.Lock()
        self._room_id: str | None = None
        self._room_subscription: Subscription | None = None
        self._system_subscription: Subscription | None = None
        self._handlers: list[MessageHandler] = []
        self._system_handlers: list[SystemEventHandler] = []

    @property
    def room_id(self) -> str | None:
        return self._room_id

    # -- system channel ----------------------------------------------------

    async def open(self) -> None:
        if self._system_subscription is None:
            self._system_subscription = await self._store.subscribe_system(self._on_system_row)

    async def close(self) -> None:
        await self.disconnect()
        if self._system_subscription is not None:
            subscription, self._system_subscription = self._system_subscription, None
            await subscription.stop()
        self._system_handlers.clear()

    def on_system_event(self, handler: SystemEventHandler) -> Unsubscribe:
        self._system_handlers.append(handler)
        return lambda: _discard(self._system_handlers, handler)

    async def broadcast_system(self, event: SystemEvent) -> None:
        await self._store.broadcast_system(dataclasses.asdict(event))

    # -- room channel ------------------------------------------------------

    async def connect(self, room_id: str) -> None:
        """Subscribe to ``room_id``, tearing down any previous room first."""
        async with self._lock:
            await self._teardown_room()
            self._room_id = room_id
            try:
                self._room_subscription = await self._store.subscribe_room(
                    room_id, self._on_room_row,
                )
            except BaseException:
                self._room_id = None
                raise
            logger.debug("Connected to room %s", room_id)

    async def disconnect(self) -> None:
        async with self._lock:
            await self._teardown_room()
            self._handlers.clear()

    def on_message(self, handler: MessageHandler) -> Unsubscribe:
        self._handlers.append(handler)
        return lambda: _discard(self._handlers, handler)

    async def fetch_history(self, room_id: str) -> list[Message]:
        """Most recent persisted messages of a room, oldest first."""
        rows = await self._store.query_messages(room_id, limit=self._history_limit)
        messages = [m for m in (self._to_message(row) for row in rows) if m is not None]
        return messages[-self._history_limit:]

    async def send_message(self, room_id: str, draft: MessageDraft) -> None:
        await self._store.insert_message(draft.to_row(room_id))

    # -- internals ---------------------------------------------------------

    async def _teardown_room(self) -> None:
        # Clear the room id first so rows already in flight are dropped.
        self._room_id = None
        if self._room_subscription is not None:
            subscription, self._room_subscription = self._room_subscription, None
            await subscription.stop()

    async def _on_room_row(self, row: dict[str, Any]) -> None:
        message = self._to_message(row)
        if message is None:
            return
        if str(row.get("room_id")) != self._room_id:
            logger.debug("Dropping row %s for inactive room %s", message.id, row.get("room_id"))
            return
        for handler in list(self._handlers):
            try:
                handler(message)
            except Exception:
                logger.exception("Message handler failed for %s", message.id)

    async def _on_system_row(self, data: dict[str, Any]) -> None:
        try:
            event = SystemEvent(
                type=data["type"],
                sender_email=data["sender_email"],
                recipient_email=data.get("recipient_email"),
                payload=data.get("payload") or {},
            )
        except (KeyError, TypeError):
            logger.warning("Dropping malformed system event: %r", data)
            return
        for handler in list(self._system_handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("System event handler failed for %s", event.type)

    @staticmethod
    def _to_message(row: dict[str, Any]) -> Message | None:
        try:
            return MessageRow.model_validate(row).to_entity()
        except PydanticValidationError as exc:
            logger.warning("Dropping malformed message row: %s", exc.errors(include_url=False))
            return None


def _discard(handlers: list[Any], handler: Any) -> None:
    try:
        handlers.remove(handler)
    except ValueError:
        pass
