from __future__ import annotations

from typing import Any, Callable, Coroutine, Protocol

RowCallback = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]


class Subscription(Protocol):
    async def stop(self) -> None: ...


class RemoteStore(Protocol):
    """Managed backend: message rows, per-room live channel, global system channel.

    Rows cross this port as plain dicts shaped like
    ``{id, room_id, sender_email, sender_username, sender_language, text, created_at}``.
    """

    async def insert_message(self, row: dict[str, Any]) -> None:
        """Persist a row (without ``id``/``created_at``). Raise WriteRejectedError on failure."""
        ...

    async def query_messages(self, room_id: str, *, limit: int) -> list[dict[str, Any]]:
        """Most recent ``limit`` rows of a room, oldest first."""
        ...

    async def subscribe_room(self, room_id: str, callback: RowCallback) -> Subscription: ...

    async def subscribe_system(self, callback: RowCallback) -> Subscription: ...

    async def broadcast_system(self, payload: dict[str, Any]) -> None: ...
