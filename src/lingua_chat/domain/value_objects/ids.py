from __future__ import annotations

import secrets
from collections.abc import Container
from typing import NewType

from lingua_chat.domain.entities.message import TEMP_ID_PREFIX

RoomId = NewType("RoomId", str)
MessageId = NewType("MessageId", str)


def make_temp_id(now_ms: int, taken: Container[str] = ()) -> MessageId:
    """Build ``temp-<millis>``; add a random suffix if that id is already taken."""
    candidate = f"{TEMP_ID_PREFIX}{now_ms}"
    while candidate in taken:
        candidate = f"{TEMP_ID_PREFIX}{now_ms}-{secrets.token_hex(2)}"
    return MessageId(candidate)
