from __future__ import annotations

from dataclasses import dataclass

TEMP_ID_PREFIX = "temp-"


@dataclass(frozen=True, slots=True)
class Message:
    id: str
    sender: str
    sender_email: str
    sender_language: str
    text: str
    timestamp: int

    @property
    def is_temporary(self) -> bool:
        """True for optimistic messages the store has not confirmed yet."""
        return self.id.startswith(TEMP_ID_PREFIX)


@dataclass(frozen=True, slots=True)
class TranslatedMessage(Message):
    translated_text: str | None = None
    is_translating: bool = False

    @classmethod
    def from_message(cls, message: Message, *, is_translating: bool = False) -> TranslatedMessage:
        return cls(
            id=message.id,
            sender=message.sender,
            sender_email=message.sender_email,
            sender_language=message.sender_language,
            text=message.text,
            timestamp=message.timestamp,
            is_translating=is_translating,
        )

    def display_text(self, *, show_original: bool = False) -> str:
        if show_original or self.translated_text is None:
            return self.text
        return self.translated_text
