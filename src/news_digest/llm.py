"""Language-model capability: chat completion, transcription and image generation.

Every call goes through `LanguageModel`; the OpenAI client is built on first use so
the service can start (and tests can run) without `OPENAI_API_KEY`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from .config import Settings, get_settings
from .errors import DownstreamCallError, DownstreamFormatError
from .models import Transcription

logger = logging.getLogger(__name__)

# Whisper's verbose_json reports the language by English name.
LANGUAGE_NAME_CODES: dict[str, str] = {
    "arabic": "ar",
    "chinese": "zh",
    "dutch": "nl",
    "english": "en",
    "french": "fr",
    "german": "de",
    "greek": "el",
    "hebrew": "he",
    "hindi": "hi",
    "indonesian": "id",
    "italian": "it",
    "japanese": "ja",
    "korean": "ko",
    "polish": "pl",
    "portuguese": "pt",
    "russian": "ru",
    "spanish": "es",
    "swedish": "sv",
    "turkish": "tr",
    "ukrainian": "uk",
    "vietnamese": "vi",
}


def build_client(api_key: Optional[str] = None) -> AsyncOpenAI:
    """Create an OpenAI client; separated for easier testing."""
    return AsyncOpenAI(api_key=api_key)


def _require_api_key(settings: Settings) -> str:
    if not settings.openai_api_key:
        raise RuntimeError(
            "OPENAI_API_KEY is required. Set it in the environment or .env file."
        )
    return settings.openai_api_key


def normalize_language(raw: Optional[str]) -> Optional[str]:
    """Map a transcription language (ISO code or English name) to ISO-2."""
    if not raw:
        return None
    txt = raw.strip().lower()
    if len(txt) == 2 and txt.isalpha():
        return txt
    return LANGUAGE_NAME_CODES.get(txt)


def _completion_text_or_raise(completion: object, *, step: str) -> str:
    """Extract the reply text or raise a clear error when output is missing."""
    choices = getattr(completion, "choices", None) or []
    if not choices:
        raise DownstreamFormatError(f"{step} response had no choices.")
    choice = choices[0]
    message = getattr(choice, "message", None)
    text = getattr(message, "content", None)
    if isinstance(text, str) and text.strip():
        return text

    refusal = getattr(message, "refusal", None)
    if refusal:
        raise DownstreamFormatError(f"{step} response refused: {refusal}")
    reason = getattr(choice, "finish_reason", None)
    raise DownstreamFormatError(
        f"{step} response missing output text (finish_reason={reason})."
    )


class LanguageModel:
    """Thin async wrapper over the OpenAI SDK used by every pipeline step."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.settings = settings or get_settings()
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = build_client(_require_api_key(self.settings))
        return self._client

    async def complete(
        self,
        messages: List[Dict[str, str]],
        *,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
        step: str = "Completion",
    ) -> str:
        """Run one chat completion and return the reply text."""
        request_kwargs: Dict[str, Any] = {
            "model": model or self.settings.completion_model,
            "messages": messages,
        }
        if max_tokens and max_tokens > 0:
            request_kwargs["max_tokens"] = max_tokens
        if json_mode:
            request_kwargs["response_format"] = {"type": "json_object"}

        try:
            completion = await self.client.chat.completions.create(**request_kwargs)
        except OpenAIError as exc:
            raise DownstreamCallError(f"{step} request failed: {exc}") from exc
        return _completion_text_or_raise(completion, step=step)

    async def transcribe(self, audio: bytes, filename: str = "audio.webm") -> Transcription:
        """Turn raw audio into text plus the detected language."""
        try:
            result = await self.client.audio.transcriptions.create(
                model=self.settings.transcription_model,
                file=(filename, audio),
                response_format="verbose_json",
            )
        except OpenAIError as exc:
            raise DownstreamCallError(f"Transcription request failed: {exc}") from exc
        text = (getattr(result, "text", None) or "").strip()
        language = normalize_language(getattr(result, "language", None))
        logger.info("Transcribed %d chars of audio (language=%s)", len(text), language)
        return Transcription(text=text, language=language)

    async def generate_image(self, prompt: str) -> str:
        """Generate one image and return its URL."""
        try:
            image = await self.client.images.generate(
                model=self.settings.image_model,
                prompt=prompt,
                n=1,
                size=self.settings.image_size,
            )
        except OpenAIError as exc:
            raise DownstreamCallError(
                f"Image generation failed: {exc}",
                public_message="OpenAI image generation failed",
            ) from exc
        data = getattr(image, "data", None) or []
        url = getattr(data[0], "url", None) if data else None
        if not url:
            raise DownstreamFormatError(
                "Image response missing URL.",
                public_message="OpenAI image generation failed",
            )
        return url
