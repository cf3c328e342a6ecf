"""Per-item summaries, produced concurrently and joined in input order."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from .config import Settings, get_settings
from .errors import DownstreamCallError
from .llm import LanguageModel
from .models import FeedItem, SummarizedItem

logger = logging.getLogger(__name__)

PLACEHOLDER_TITLE = "No recent news found"
PLACEHOLDER_SOURCE = "System"


def placeholder_item(topic: str) -> SummarizedItem:
    """Synthetic item used when the feed returned nothing for the topic."""
    return SummarizedItem(
        title=PLACEHOLDER_TITLE,
        link=None,
        published_at=datetime.now(timezone.utc).isoformat(),
        source=PLACEHOLDER_SOURCE,
        summary=f"We couldn't find any recent news about {topic}.",
    )


class Summarizer:
    def __init__(self, model: LanguageModel, settings: Optional[Settings] = None):
        self.model = model
        self.settings = settings or get_settings()

    async def summarize_one(self, item: FeedItem, language: str) -> SummarizedItem:
        try:
            text = await self.model.complete(
                [
                    {
                        "role": "system",
                        "content": f"Summarize in one punchy sentence in {language}.",
                    },
                    {"role": "user", "content": item.title},
                ],
                model=self.settings.summarizer_model,
                max_tokens=self.settings.summary_max_tokens,
                step="Summarizer",
            )
            summary = text.strip()
        except Exception as exc:
            if not self.settings.summary_fallback_to_title:
                raise DownstreamCallError(
                    f"Summary failed for {item.title!r}: {exc}"
                ) from exc
            logger.warning("Summary failed for %r, using title: %s", item.title, exc)
            summary = item.title
        return SummarizedItem(**item.model_dump(), summary=summary)

    async def summarize(
        self, items: Sequence[FeedItem], language: str
    ) -> List[SummarizedItem]:
        """
        Summarize every item concurrently.

        Results keep the input order. A single failed call fails the whole batch
        unless `summary_fallback_to_title` is enabled; the calls still in flight
        are then cancelled before the error is raised.
        """
        if not items:
            return []
        tasks = [
            asyncio.ensure_future(self.summarize_one(item, language)) for item in items
        ]
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        for task in tasks:
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()
        return [task.result() for task in tasks]
