from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class User:
    username: str
    email: str
    preferred_language: str
    friends: tuple[str, ...] = field(default_factory=tuple)
    friend_requests: tuple[str, ...] = field(default_factory=tuple)
    is_guest: bool = False
