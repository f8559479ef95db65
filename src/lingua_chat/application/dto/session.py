from __future__ import annotations

from dataclasses import dataclass

from lingua_chat.domain.value_objects.enums import ErrorKind


@dataclass(frozen=True, slots=True)
class ErrorState:
    """User-visible, dismissible error surfaced by a chat session."""

    kind: ErrorKind
    detail: str
