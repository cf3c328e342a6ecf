import asyncio
import json

import httpx
from starlette.websockets import WebSocketState

from news_digest.activity import ActivityLogger
from news_digest.broadcast import Broadcaster
from news_digest.config import Settings
from news_digest.models import ActivityRecord


def _record(prompt="latest on chip tariffs"):
    return ActivityRecord(
        user_id="42",
        prompt=prompt,
        topic="chip tariffs",
        language="en",
        request_type="text",
    )


def _logger(handler, **settings) -> ActivityLogger:
    base = {"ACTIVITY_LOG_URL": "https://sink.example/activity", "activity_log_timeout": 0.5}
    base.update(settings)
    return ActivityLogger(Settings(**base), transport=httpx.MockTransport(handler))


def test_activity_record_truncates_prompt():
    assert len(_record("x" * 5000).prompt) == 1000


def test_activity_logger_posts_record():
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(201)

    logger = _logger(handler, ACTIVITY_LOG_KEY="secret")
    assert asyncio.run(logger.log(_record())) is True

    body = json.loads(received[0].content)
    assert body["user_id"] == "42"
    assert body["request_type"] == "text"
    assert received[0].headers["Authorization"] == "Bearer secret"


def test_activity_logger_swallows_error_status():
    logger = _logger(lambda request: httpx.Response(500))
    assert asyncio.run(logger.log(_record())) is False


def test_activity_logger_swallows_timeout():
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    assert asyncio.run(_logger(handler).log(_record())) is False


def test_activity_logger_disabled_without_url():
    calls = []
    logger = ActivityLogger(
        Settings(ACTIVITY_LOG_URL=None),
        transport=httpx.MockTransport(lambda request: calls.append(request)),
    )
    assert logger.enabled is False
    assert asyncio.run(logger.log(_record())) is False
    assert calls == []


class FakeSubscriber:
    def __init__(self, state=WebSocketState.CONNECTED, fail=False):
        self.client_state = state
        self.fail = fail
        self.sent = []

    async def send_json(self, data, mode="text"):
        if self.fail:
            raise RuntimeError("socket gone")
        self.sent.append(data)


def test_broadcast_reaches_open_subscribers_only():
    hub = Broadcaster()
    open_one = FakeSubscriber()
    closed = FakeSubscriber(state=WebSocketState.DISCONNECTED)
    hub.register(open_one)
    hub.register(closed)

    delivered = asyncio.run(hub.broadcast({"type": "ping"}))

    assert delivered == 1
    assert open_one.sent == [{"type": "ping"}]
    assert closed.sent == []
    assert len(hub) == 1


def test_broadcast_drops_failing_subscriber():
    hub = Broadcaster()
    broken = FakeSubscriber(fail=True)
    healthy = FakeSubscriber()
    hub.register(broken)
    hub.register(healthy)

    assert asyncio.run(hub.broadcast("hello")) == 1
    assert healthy.sent == ["hello"]
    assert len(hub) == 1


def test_unregister_is_idempotent():
    hub = Broadcaster()
    sub = FakeSubscriber()
    hub.register(sub)
    hub.unregister(sub)
    hub.unregister(sub)
    assert len(hub) == 0
