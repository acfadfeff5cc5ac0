import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from aiohttp import web

from uptimeboard.config import NtfyTarget, WebhookTarget
from uptimeboard.jobs import notify
from uptimeboard.notifier import (
    Alert,
    CompositeNotifier,
    DeliveryError,
    LogNotifier,
    Notifier,
    NtfyNotifier,
    WebhookNotifier,
    build_notifier,
    format_notification_message,
    join_names,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class RecordingNotifier(Notifier):
    def __init__(self, fail: bool = False):
        self.sent: list[Alert] = []
        self._fail = fail

    async def send(self, alert: Alert) -> None:
        self.sent.append(alert)
        if self._fail:
            raise DeliveryError("channel is down")


def _target(minutes_between=30):
    return NtfyTarget.model_validate({"type": "ntfy", "topic": "alerts", "schedule": "every minute", "minutesBetween": minutes_between})


def test_join_names():
    assert join_names([]) == ""
    assert join_names(["a"]) == "a"
    assert join_names(["a", "b"]) == "a and b"
    assert join_names(["a", "b", "c"]) == "a, b and c"


def test_format_notification_message():
    assert format_notification_message([]) is None
    assert format_notification_message([{"service": "a", "ok": True}]) is None
    assert format_notification_message([{"service": "my-service-0", "ok": False}]) == "1 service down: my-service-0"
    statuses = [
        {"service": "a", "ok": False},
        {"service": "b", "ok": True},
        {"service": "c", "ok": False},
    ]
    assert format_notification_message(statuses) == "2 services down: a and c"


def test_notify_nothing_down(db):
    db.events.record("a", ok=True, latency=10, created=NOW)
    sink = RecordingNotifier()
    sent = asyncio.run(notify(_target(), db.events, db.notifications, ["a"], sink, now=NOW))
    assert sent is False
    assert sink.sent == []
    assert db.notifications.latest() is None


def test_notify_first_time_sends(db):
    db.events.record("a", ok=False, created=NOW)
    sink = RecordingNotifier()
    sent = asyncio.run(notify(_target(), db.events, db.notifications, ["a"], sink, now=NOW))
    assert sent is True
    assert [a.message for a in sink.sent] == ["1 service down: a"]
    record = db.notifications.latest("alerts")
    assert record["timestamp"] == NOW
    assert record["message"] == "1 service down: a"


def test_notify_debounced_inside_window(db):
    db.events.record("a", ok=False, created=NOW)
    db.notifications.record("1 service down: a", target="alerts", timestamp=NOW - timedelta(minutes=10))
    sink = RecordingNotifier()
    sent = asyncio.run(notify(_target(30), db.events, db.notifications, ["a"], sink, now=NOW))
    assert sent is False
    assert sink.sent == []
    assert db.notifications.latest("alerts")["timestamp"] == NOW - timedelta(minutes=10)


def test_notify_sends_after_window(db):
    db.events.record("a", ok=False, created=NOW)
    db.notifications.record("1 service down: a", target="alerts", timestamp=NOW - timedelta(minutes=31))
    sink = RecordingNotifier()
    sent = asyncio.run(notify(_target(30), db.events, db.notifications, ["a"], sink, now=NOW))
    assert sent is True
    assert len(sink.sent) == 1
    assert db.notifications.latest("alerts")["timestamp"] == NOW


def test_notify_window_is_per_target(db):
    db.events.record("a", ok=False, created=NOW)
    db.notifications.record("1 service down: a", target="other-topic", timestamp=NOW - timedelta(minutes=1))
    sink = RecordingNotifier()
    assert asyncio.run(notify(_target(30), db.events, db.notifications, ["a"], sink, now=NOW)) is True


def test_notify_delivery_failure_is_not_raised(db):
    """Запись сохраняется до отправки; сбой канала только логируется."""
    db.events.record("a", ok=False, created=NOW)
    sink = RecordingNotifier(fail=True)
    sent = asyncio.run(notify(_target(), db.events, db.notifications, ["a"], sink, now=NOW))
    assert sent is True
    assert db.notifications.latest("alerts")["timestamp"] == NOW


def test_composite_notifier_tries_every_channel():
    first, second = RecordingNotifier(fail=True), RecordingNotifier()
    with pytest.raises(DeliveryError):
        asyncio.run(CompositeNotifier([first, second]).send(Alert(title="t", message="m")))
    assert len(first.sent) == 1
    assert len(second.sent) == 1


def test_build_notifier():
    ntfy = build_notifier(_target())
    assert isinstance(ntfy, CompositeNotifier)
    log_channel, channel = ntfy.channels
    assert isinstance(log_channel, LogNotifier)
    assert isinstance(channel, NtfyNotifier)
    assert channel.url == "https://ntfy.sh/alerts"

    hook = build_notifier(WebhookTarget.model_validate({"type": "webhook", "url": "https://hooks.example.com/x", "schedule": "every minute", "minutesBetween": 1}))
    assert isinstance(hook.channels[1], WebhookNotifier)


def test_ntfy_post(local_server):
    received = []

    async def topic(request):
        received.append((request.match_info["topic"], await request.text(), request.headers.get("Title"), request.headers.get("Tags")))
        return web.json_response({"id": "x"})

    async def scenario():
        async with local_server([("POST", "/{topic}", topic)]) as server:
            notifier = NtfyNotifier("alerts", server=str(server.make_url("/")))
            await notifier.send(Alert(title="Service down", message="1 service down: a", tags="warning"))

    asyncio.run(scenario())
    assert received == [("alerts", "1 service down: a", "Service down", "warning")]


def test_ntfy_error_status_raises(local_server):
    async def topic(request):
        return web.Response(status=500)

    async def scenario():
        async with local_server([("POST", "/{topic}", topic)]) as server:
            await NtfyNotifier("alerts", server=str(server.make_url("/"))).send(Alert(title="t", message="m"))

    with pytest.raises(DeliveryError):
        asyncio.run(scenario())


def test_webhook_post(local_server):
    received = []

    async def hook(request):
        received.append(await request.json())
        return web.Response(status=204)

    async def scenario():
        async with local_server([("POST", "/hook", hook)]) as server:
            await WebhookNotifier(str(server.make_url("/hook"))).send(Alert(title="Service down", message="2 services down: a and b"))

    asyncio.run(scenario())
    assert received[0]["message"] == "2 services down: a and b"
    assert received[0]["level"] == "error"
