"""Intent analysis: topic, language, country and display title for a raw query."""

from __future__ import annotations

import json
import logging
from typing import Optional

from pydantic import ValidationError

from .config import Settings, get_settings
from .errors import DownstreamFormatError
from .llm import LanguageModel
from .models import Intent
from .schema import validate_intent_payload

logger = logging.getLogger(__name__)

INTENT_SYSTEM_PROMPT = (
    "You analyze news search queries.\n"
    "Return exactly one JSON object with four string keys:\n\n"
    '{"topic_original":"<main topic>", "language":"<ISO-2>", '
    '"country":"<ISO-2>", "title":"<short display title>"}\n\n'
    "Rules:\n"
    "- topic_original: the main news topic, kept in the user's words. Do NOT "
    "translate it unless the user explicitly asks for a translation.\n"
    "- language: the ISO 639-1 code of the ORIGINAL query. Never substitute a "
    "different language.\n"
    "- country: the ISO 3166-1 alpha-2 code of the most relevant country. Use "
    '"US" when unclear.\n'
    "- title: a short display title written in the original language.\n"
    "No other keys, no extra text."
)


def _strip_code_fence(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else ""
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3]
    return cleaned.strip()


def parse_intent_reply(text: str) -> Intent:
    """
    Decode and strictly validate the analyzer reply.

    Anything other than the four-field record raises DownstreamFormatError;
    no field is ever defaulted here.
    """
    try:
        payload = json.loads(_strip_code_fence(text))
    except json.JSONDecodeError as exc:
        raise DownstreamFormatError(f"Intent reply is not valid JSON: {exc}") from exc
    validate_intent_payload(payload)
    try:
        return Intent(**payload)
    except ValidationError as exc:
        raise DownstreamFormatError(f"Intent reply rejected: {exc}") from exc


class IntentAnalyzer:
    """Extracts a structured Intent from free text via the language model."""

    def __init__(self, model: LanguageModel, settings: Optional[Settings] = None):
        self.model = model
        self.settings = settings or get_settings()

    def _user_message(self, text: str, detected_language: Optional[str]) -> str:
        if not detected_language:
            return text
        return (
            f"{text}\n\n"
            f"(Speech recognition detected language: {detected_language}. Keep this "
            "language unless the query explicitly asks for a translation.)"
        )

    async def analyze(self, text: str, detected_language: Optional[str] = None) -> Intent:
        reply = await self.model.complete(
            [
                {"role": "system", "content": INTENT_SYSTEM_PROMPT},
                {"role": "user", "content": self._user_message(text, detected_language)},
            ],
            model=self.settings.intent_model,
            json_mode=True,
            step="Intent analyzer",
        )
        intent = parse_intent_reply(reply)
        logger.info(
            "Detected intent topic=%r language=%s country=%s",
            intent.topic_original,
            intent.language,
            intent.country,
        )
        return intent
