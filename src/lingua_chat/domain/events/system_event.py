from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class SystemEvent:
    """Ephemeral event on the global system channel (never persisted)."""

    type: str
    sender_email: str
    recipient_email: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
