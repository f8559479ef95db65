from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ChatRoom:
    id: str
    name: str
    is_direct: bool = False
