"""Process-wide registry of live-update subscribers."""

from __future__ import annotations

import logging
from typing import Any, Protocol, Set

from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


class Subscriber(Protocol):
    client_state: WebSocketState

    async def send_json(self, data: Any, mode: str = "text") -> None:  # pragma: no cover - interface
        ...


class Broadcaster:
    """
    Holds the open subscriber connections.

    Connect/disconnect is driven by the transport layer; the pipeline only
    calls `broadcast`. One instance is created at application startup.
    """

    def __init__(self) -> None:
        self._subscribers: Set[Subscriber] = set()

    def __len__(self) -> int:
        return len(self._subscribers)

    def register(self, subscriber: Subscriber) -> None:
        self._subscribers.add(subscriber)

    def unregister(self, subscriber: Subscriber) -> None:
        self._subscribers.discard(subscriber)

    async def broadcast(self, message: Any) -> int:
        """Send `message` to every open subscriber; returns how many received it."""
        delivered = 0
        for subscriber in list(self._subscribers):
            if subscriber.client_state != WebSocketState.CONNECTED:
                self.unregister(subscriber)
                continue
            try:
                await subscriber.send_json(message)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                logger.warning("Dropping subscriber after failed send: %s", exc)
                self.unregister(subscriber)
                continue
            delivered += 1
        return delivered
