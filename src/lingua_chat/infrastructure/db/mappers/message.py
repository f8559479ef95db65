from __future__ import annotations

from typing import Any

from lingua_chat.infrastructure.db.models.message import MessageModel


def model_to_row(model: MessageModel) -> dict[str, Any]:
    return {
        "id": str(model.id),
        "room_id": model.room_id,
        "sender_email": model.sender_email,
        "sender_username": model.sender_username,
        "sender_language": model.sender_language,
        "text": model.text,
        "created_at": model.created_at,
    }
