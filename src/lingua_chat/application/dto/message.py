from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

from lingua_chat.domain.entities.message import Message

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class MessageDraft:
    sender: str
    sender_email: str
    sender_language: str
    text: str

    def to_row(self, room_id: str) -> dict[str, Any]:
        return {
            "room_id": room_id,
            "sender_email": self.sender_email,
            "sender_username": self.sender,
            "sender_language": self.sender_language,
            "text": self.text,
        }


class MessageRow(BaseModel):
    """Persisted message row as delivered by the store (query or live channel)."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    room_id: str
    sender_email: str
    sender_username: str
    sender_language: str
    text: str
    created_at: datetime

    @field_validator("id", "room_id", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if isinstance(value, (int, UUID)):
            return str(value)
        return value

    @property
    def timestamp_ms(self) -> int:
        created = self.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return (created - _EPOCH) // timedelta(milliseconds=1)

    def to_entity(self) -> Message:
        return Message(
            id=self.id,
            sender=self.sender_username,
            sender_email=self.sender_email,
            sender_language=self.sender_language,
            text=self.text,
            timestamp=self.timestamp_ms,
        )
