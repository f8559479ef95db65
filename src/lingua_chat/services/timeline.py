"""In-memory reconciled message list for the active room.

Merges three sources into one list ordered by timestamp, with unique ids:

* history fetched on room entry,
* live-channel pushes (possibly redelivered),
* optimistic local sends carrying ``temp-`` ids.

Each message is annotated with its translation state at admission. This
class does no I/O and no locking; its owner must serialize calls.
"""
from __future__ import annotations

import dataclasses
from collections.abc import Iterable

from lingua_chat.domain.entities.message import Message, TranslatedMessage
from lingua_chat.domain.entities.user import User
from lingua_chat.domain.value_objects.enums import Admission


def needs_translation(message: Message, viewer: User) -> bool:
    """Sent by someone else, in a language other than the viewer's preference."""
    return (
        message.sender_email != viewer.email
        and message.sender_language != viewer.preferred_language
    )


class RoomTimeline:
    def __init__(self, viewer: User, *, translation_enabled: bool = True) -> None:
        self._viewer = viewer
        self._translation_enabled = translation_enabled
        self._items: list[TranslatedMessage] = []

    @property
    def viewer(self) -> User:
        return self._viewer

    @property
    def messages(self) -> tuple[TranslatedMessage, ...]:
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, message_id: object) -> bool:
        return any(m.id == message_id for m in self._items)

    def get(self, message_id: str) -> TranslatedMessage | None:
        for m in self._items:
            if m.id == message_id:
                return m
        return None

    def clear(self) -> None:
        self._items.clear()

    # -- admission ---------------------------------------------------------

    def admit_history(self, history: Iterable[Message]) -> int:
        """Merge fetched history into whatever is already in memory.

        Entries already present keep their state (they may carry a
        translation). A row that confirms an optimistic placeholder replaces
        it, unless the placeholder is newer than the row. Returns the number
        of entries added or confirmed.
        """
        changed = 0
        for message in history:
            if message.id in self:
                continue
            placeholder = self._find_placeholder(message, not_after=message.timestamp)
            if placeholder is not None:
                self._items.remove(placeholder)
            self._items.append(self._annotate(message))
            changed += 1
        self._sort()
        return changed

    def admit_live(self, message: Message) -> Admission:
        if message.id in self:
            return Admission.DUPLICATE
        placeholder = self._find_placeholder(message)
        if placeholder is not None:
            self._items.remove(placeholder)
            self._items.append(self._annotate(message))
            self._sort()
            return Admission.CONFIRMED
        self._items.append(self._annotate(message))
        self._sort()
        return Admission.INSERTED

    def add_optimistic(self, message: Message) -> TranslatedMessage:
        if message.id in self:
            raise ValueError(f"duplicate message id {message.id}")
        item = TranslatedMessage.from_message(message, is_translating=False)
        self._items.append(item)
        self._sort()
        return item

    def remove(self, message_id: str) -> bool:
        item = self.get(message_id)
        if item is None:
            return False
        self._items.remove(item)
        return True

    # -- translation -------------------------------------------------------

    def next_pending_translation(self) -> TranslatedMessage | None:
        """Oldest message still waiting for a translation."""
        for m in self._items:
            if m.is_translating and m.translated_text is None:
                return m
        return None

    def apply_translation(self, message_id: str, translated_text: str) -> bool:
        return self._replace(message_id, translated_text=translated_text, is_translating=False)

    def fail_translation(self, message_id: str) -> bool:
        item = self.get(message_id)
        if item is None:
            return False
        return self._replace(message_id, translated_text=item.text, is_translating=False)

    def update_viewer(self, viewer: User) -> None:
        """Re-annotate every message for a new viewer (e.g. a language change)."""
        language_changed = viewer.preferred_language != self._viewer.preferred_language
        self._viewer = viewer
        for index, item in enumerate(self._items):
            eligible = self._eligible(item)
            if not eligible:
                if item.is_translating or item.translated_text is not None:
                    self._items[index] = dataclasses.replace(
                        item, translated_text=None, is_translating=False,
                    )
            elif language_changed or (not item.is_translating and item.translated_text is None):
                self._items[index] = dataclasses.replace(
                    item, translated_text=None, is_translating=True,
                )

    # -- internals ---------------------------------------------------------

    def _eligible(self, message: Message) -> bool:
        return self._translation_enabled and needs_translation(message, self._viewer)

    def _annotate(self, message: Message) -> TranslatedMessage:
        return TranslatedMessage.from_message(message, is_translating=self._eligible(message))

    def _find_placeholder(
        self, message: Message, *, not_after: int | None = None,
    ) -> TranslatedMessage | None:
        if message.is_temporary:
            return None
        for m in self._items:
            if not_after is not None and m.timestamp > not_after:
                continue
            if (
                m.is_temporary
                and m.sender_email == message.sender_email
                and m.text == message.text
            ):
                return m
        return None

    def _replace(self, message_id: str, **changes: object) -> bool:
        for index, m in enumerate(self._items):
            if m.id == message_id:
                self._items[index] = dataclasses.replace(m, **changes)
                return True
        return False

    def _sort(self) -> None:
        # list.sort is stable, so equal timestamps keep insertion order.
        self._items.sort(key=lambda m: m.timestamp)
