from datetime import datetime, timedelta, timezone

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_latest_status_is_newest_event(db):
    db.events.record("web", ok=True, latency=120, created=NOW - timedelta(minutes=10))
    db.events.record("web", ok=False, created=NOW - timedelta(minutes=1))
    db.events.record("api", ok=True, latency=50, created=NOW - timedelta(minutes=5))

    latest = {e["service"]: e for e in db.events.latest_status_per_service()}
    assert set(latest) == {"web", "api"}
    assert latest["web"]["ok"] is False
    assert latest["web"]["created"] == NOW - timedelta(minutes=1)
    assert latest["api"]["latency"] == 50


def test_current_statuses_skips_removed_services(db):
    db.events.record("web", ok=True, latency=10, created=NOW)
    db.events.record("legacy", ok=False, created=NOW)
    statuses = db.events.current_statuses(["web"])
    assert [s["service"] for s in statuses] == ["web"]


def test_failure_never_stores_latency(db):
    event = db.events.record("web", ok=False, latency=999, created=NOW)
    assert event["latency"] is None


def test_average_latency_ignores_failures(db):
    db.events.record("web", ok=True, latency=100, created=NOW - timedelta(minutes=3))
    db.events.record("web", ok=True, latency=200, created=NOW - timedelta(minutes=2))
    db.events.record("web", ok=False, created=NOW - timedelta(minutes=1))
    assert db.events.average_latency("web") == 150.0
    assert db.events.average_latency("nothing") is None


def test_query_range_order_and_bounds(db):
    for minutes in (30, 20, 10):
        db.events.record("web", ok=True, latency=minutes, created=NOW - timedelta(minutes=minutes))
    db.events.record("other", ok=True, latency=1, created=NOW)

    since = NOW - timedelta(minutes=25)
    asc = db.events.query_range("web", since)
    assert [e["latency"] for e in asc] == [20, 10]
    desc = db.events.query_range("web", since, ascending=False)
    assert [e["latency"] for e in desc] == [10, 20]


def test_uptime_percent(db):
    db.events.record("web", ok=True, latency=10, created=NOW - timedelta(minutes=3))
    db.events.record("web", ok=True, latency=10, created=NOW - timedelta(minutes=2))
    db.events.record("web", ok=True, latency=10, created=NOW - timedelta(minutes=1))
    db.events.record("web", ok=False, created=NOW)
    assert db.events.uptime("web", NOW - timedelta(hours=1)) == 75.0
    assert db.events.uptime("web", NOW + timedelta(minutes=1)) is None


def test_delete_older_than(db):
    db.events.record("web", ok=True, latency=10, created=NOW - timedelta(hours=25))
    db.events.record("web", ok=True, latency=20, created=NOW - timedelta(hours=23))

    deleted = db.events.delete_older_than(NOW - timedelta(hours=24))
    assert deleted == 1
    remaining = db.events.query_range("web", NOW - timedelta(days=7))
    assert [e["latency"] for e in remaining] == [20]


def test_bulk_record_and_delete_all(db):
    rows = [{"service": "web", "ok": True, "latency": 5, "created": NOW - timedelta(minutes=i)} for i in range(10)]
    assert db.events.bulk_record(rows) == 10
    assert db.events.delete_all() == 10
    assert db.events.latest_status_per_service() == []


def test_naive_timestamps_are_treated_as_utc(db):
    event = db.events.record("web", ok=True, latency=1, created=datetime(2024, 5, 1, 12, 0))
    assert event["created"].tzinfo is not None
    assert event["created"] == NOW


def test_notification_latest_per_target(db):
    assert db.notifications.latest() is None
    db.notifications.record("1 service down: a", target="alerts", timestamp=NOW - timedelta(minutes=40))
    db.notifications.record("1 service down: a", target="https://hooks.example.com", timestamp=NOW - timedelta(minutes=5))

    assert db.notifications.latest("alerts")["timestamp"] == NOW - timedelta(minutes=40)
    assert db.notifications.latest()["target"] == "https://hooks.example.com"
    assert db.notifications.latest("unknown") is None


def test_ping(db):
    db.events.ping()
