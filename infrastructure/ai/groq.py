"""Groq implementation of AIProvider.

Groq exposes an OpenAI-compatible API, so the official ``openai`` async client
is pointed at Groq's base URL.

Failure policy:
- complete()   never raises; callers substitute placeholder content on None
- translate()  and transcribe() raise ExternalServiceError (the request has
               nothing useful to return without them)
"""

from __future__ import annotations

import asyncio
import os
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from config import AISettings
from errors import ExternalServiceError
from shared.logging import get_logger

log = get_logger(__name__)


def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as fh:
        return fh.read()


class GroqAIProvider:
    def __init__(self, settings: AISettings, client: Optional[AsyncOpenAI] = None) -> None:
        self._settings = settings
        self._client = client
        if self._client is None and settings.is_configured:
            self._client = AsyncOpenAI(
                api_key=settings.groq_api_key,
                base_url=settings.groq_base_url,
                timeout=settings.request_timeout_seconds,
                max_retries=0,
            )
        if self._client is None:
            log.warning("ai_provider_unconfigured", reason="groq_api_key_missing")

    def is_available(self) -> bool:
        return self._client is not None

    async def complete(
        self, prompt: str, max_tokens: int = 600, temperature: float = 0.2
    ) -> Optional[str]:
        if self._client is None:
            return None
        try:
            response = await self._client.chat.completions.create(
                model=self._settings.chat_model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except OpenAIError as e:
            log.error(
                "ai_completion_failed",
                model=self._settings.chat_model,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            log.warning("ai_completion_empty", model=self._settings.chat_model)
            return None
        return content

    async def translate(self, text: str, target_lang: str) -> str:
        if self._client is None:
            raise ExternalServiceError("Translation service is not configured")
        try:
            response = await self._client.chat.completions.create(
                model=self._settings.translate_model,
                messages=[
                    {"role": "system", "content": f"Translate this text into {target_lang}"},
                    {"role": "user", "content": text},
                ],
            )
        except OpenAIError as e:
            log.error("ai_translation_failed", target_lang=target_lang, error=str(e))
            raise ExternalServiceError("Error translating transcript")

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ExternalServiceError("Error translating transcript")
        return content

    async def transcribe(self, file_path: str) -> str:
        if self._client is None:
            raise ExternalServiceError("Transcription service is not configured")
        data = await asyncio.to_thread(_read_bytes, file_path)
        try:
            result = await self._client.audio.transcriptions.create(
                file=(os.path.basename(file_path), data),
                model=self._settings.transcription_model,
            )
        except OpenAIError as e:
            log.error(
                "ai_transcription_failed",
                file=os.path.basename(file_path),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ExternalServiceError("Error transcribing audio")
        return result.text or ""

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
