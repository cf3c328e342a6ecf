"""Coordinator for one news request.

Steps run strictly in order:
- analyze (topic/language/country/title via the language model)
- fetch (feed items; never fails, may be empty)
- summarize (concurrent per item) or a placeholder when nothing was found
- assemble the NewsResponse

Delivery and the activity record are left to the caller, which dispatches the
record only after the response has been sent.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Literal, Optional

from .config import Settings, get_settings
from .errors import ClientInputError
from .feeds import FeedClient
from .intent import IntentAnalyzer
from .llm import LanguageModel
from .models import ActivityRecord, NewsResponse, PipelineResult
from .summarizer import Summarizer, placeholder_item

logger = logging.getLogger(__name__)


def _decode_audio(audio_b64: str) -> bytes:
    payload = audio_b64.split(",", 1)[1] if audio_b64.startswith("data:") else audio_b64
    try:
        audio = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ClientInputError("Audio must be base64-encoded") from exc
    if not audio:
        raise ClientInputError("Audio is required")
    return audio


class NewsPipeline:
    """Sequences analyzer -> feed client -> summarizer for a single query."""

    def __init__(
        self,
        model: Optional[LanguageModel] = None,
        *,
        analyzer: Optional[IntentAnalyzer] = None,
        feeds: Optional[FeedClient] = None,
        summarizer: Optional[Summarizer] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.model = model or LanguageModel(self.settings)
        self.analyzer = analyzer or IntentAnalyzer(self.model, self.settings)
        self.feeds = feeds or FeedClient(self.settings)
        self.summarizer = summarizer or Summarizer(self.model, self.settings)

    async def process_request(
        self,
        text: str,
        detected_language: Optional[str] = None,
        user_id: Optional[str] = None,
        request_type: Literal["text", "voice"] = "text",
    ) -> PipelineResult:
        if not text or not text.strip():
            raise ClientInputError("Text is required")

        intent = await self.analyzer.analyze(text, detected_language)
        items = await self.feeds.fetch_items(
            intent.topic_original, intent.language, intent.country
        )
        if items:
            news = await self.summarizer.summarize(items, intent.language)
        else:
            logger.info("No feed items for %r; returning placeholder", intent.topic_original)
            news = [placeholder_item(intent.topic_original)]

        response = NewsResponse(
            success=True,
            user_text=text,
            topic_data=intent,
            news=news,
            header_image="",
        )
        activity = None
        if user_id:
            activity = ActivityRecord(
                user_id=user_id,
                prompt=text,
                topic=intent.topic_original,
                language=intent.language,
                request_type=request_type,
            )
        return PipelineResult(response=response, activity=activity)

    async def process_voice(
        self, audio_b64: str, user_id: Optional[str] = None
    ) -> PipelineResult:
        """Transcribe base64 audio, then run the text pipeline on the transcript."""
        if not audio_b64:
            raise ClientInputError("Audio is required")
        transcription = await self.model.transcribe(_decode_audio(audio_b64))
        if not transcription.text:
            raise ClientInputError("Could not transcribe any speech from the audio")
        return await self.process_request(
            transcription.text,
            detected_language=transcription.language,
            user_id=user_id,
            request_type="voice",
        )
