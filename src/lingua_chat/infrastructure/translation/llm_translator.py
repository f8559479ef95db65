"""Translation gateway over LiteLLM.

LiteLLM is imported lazily so that importing this module stays cheap and
does not require provider SDKs until the first request.
"""
from __future__ import annotations

import asyncio
import logging

from lingua_chat.application.exceptions import ConfigurationMissingError, TranslationFailedError
from lingua_chat.config import Settings

logger = logging.getLogger(__name__)

_litellm_initialized = False


def _ensure_litellm() -> None:
    global _litellm_initialized
    if _litellm_initialized:
        return

    import litellm

    litellm.drop_params = True
    litellm.success_callback = []
    litellm.failure_callback = []

    _litellm_initialized = True
    logger.debug("LiteLLM initialized")


def build_prompt(text: str, target_language: str, source_language: str | None = None) -> str:
    if source_language:
        source_line = f"The source language is {source_language}."
    else:
        source_line = "Detect the source language automatically."
    return (
        f"You are a professional translator. Translate the following text into {target_language}.\n"
        f"{source_line}\n"
        "\n"
        "Guidelines:\n"
        "- Maintain the original tone and intent (formal, informal, slang, etc.).\n"
        "- Preserve any emojis.\n"
        f"- If the text is already in {target_language}, return the original text.\n"
        "- Return ONLY the translated text. Do not include any explanations or metadata.\n"
        "\n"
        "Text to translate:\n"
        f'"{text}"'
    )


class LLMTranslator:
    """Implements application.ports.translator.Translator."""

    def __init__(
        self,
        api_key: str | None,
        model: str,
        *,
        temperature: float = 0.1,
        max_tokens: int = 1000,
        timeout: float = 20.0,
    ) -> None:
        if not api_key:
            raise ConfigurationMissingError("TRANSLATION_API_KEY is not set")
        self._api_key = api_key
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> LLMTranslator:
        return cls(
            settings.TRANSLATION_API_KEY,
            settings.TRANSLATION_MODEL,
            temperature=settings.TRANSLATION_TEMPERATURE,
            max_tokens=settings.TRANSLATION_MAX_TOKENS,
            timeout=settings.TRANSLATION_TIMEOUT_SECONDS,
        )

    async def translate(
        self,
        text: str,
        target_language: str,
        source_language: str | None = None,
    ) -> str:
        _ensure_litellm()
        from litellm import acompletion

        params = {
            "model": self._model,
            "messages": [
                {"role": "user", "content": build_prompt(text, target_language, source_language)},
            ],
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
            "api_key": self._api_key,
        }
        try:
            response = await asyncio.wait_for(acompletion(**params), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise TranslationFailedError(
                f"translation timed out after {self._timeout:.0f}s"
            ) from exc
        except Exception as exc:
            logger.error("Translation request failed: %s", exc)
            raise TranslationFailedError(str(exc)) from exc

        content = response.choices[0].message.content
        return (content or "").strip() or text
