from __future__ import annotations

from typing import Protocol


class Translator(Protocol):
    async def translate(
        self,
        text: str,
        target_language: str,
        source_language: str | None = None,
    ) -> str:
        """Return ``text`` in ``target_language`` (language names, not codes).

        Raise TranslationFailedError on any gateway error or timeout.
        """
        ...
