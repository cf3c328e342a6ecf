"""Fire-and-forget activity logging to the remote sink."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .config import Settings, get_settings
from .errors import SideEffectError
from .models import ActivityRecord

logger = logging.getLogger(__name__)


class ActivityLogger:
    """Posts one record per completed request; failures never reach the caller."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.settings.activity_log_url)

    def _headers(self) -> dict[str, str]:
        if not self.settings.activity_log_key:
            return {}
        return {"Authorization": f"Bearer {self.settings.activity_log_key}"}

    async def _post(self, record: ActivityRecord) -> None:
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self.settings.activity_log_timeout,
            ) as client:
                resp = await client.post(
                    self.settings.activity_log_url,
                    json=record.model_dump(),
                    headers=self._headers(),
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise SideEffectError(f"Activity sink call failed: {exc}") from exc

    async def log(self, record: ActivityRecord) -> bool:
        """Send the record; returns whether the sink accepted it."""
        if not self.enabled:
            return False
        try:
            await self._post(record)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.warning("Activity log dropped for user %s: %s", record.user_id, exc)
            return False
        return True
