import asyncio
from datetime import datetime, timedelta, timezone

from uptimeboard.config import parse_config
from uptimeboard.jobs import build_jobs, cleanup
from uptimeboard.scheduler import Scheduler
from uptimeboard.settings import Settings, from_env

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_cleanup_keeps_last_day(db):
    db.events.record("web", ok=True, latency=10, created=NOW - timedelta(hours=25))
    db.events.record("web", ok=True, latency=20, created=NOW - timedelta(hours=23))

    deleted = asyncio.run(cleanup(db.events, hours=24, now=NOW))
    assert deleted == 1
    assert [e["latency"] for e in db.events.query_range("web", NOW - timedelta(days=2))] == [20]


def test_build_jobs_names(db):
    config = parse_config({
        "services": [
            {"service": "web", "url": "https://example.com", "okStatusCode": 200, "schedule": "every minute"},
            {"service": "api", "url": "https://api.example.com", "okStatusCode": 204, "schedule": "*/5 * * * *"},
        ],
        "heartbeat": {"uuid": "5f0c6c4e-8e0b-4d4e-9c55-3b1b4a6f7a10", "schedule": "every 10 minutes"},
        "notify": [
            {"topic": "alerts", "schedule": "every 5 minutes", "minutesBetween": 30},
            {"url": "https://hooks.example.com/x", "schedule": "every 5 minutes", "minutesBetween": 30},
        ],
    })
    jobs = build_jobs(config, db, Settings(retention_schedule="*/15 * * * *"))
    assert [j.name for j in jobs] == [
        "health-web",
        "health-api",
        "cleanup",
        "heartbeat",
        "notify-ntfy-alerts",
        "notify-webhook-https://hooks.example.com/x",
    ]
    assert jobs[2].schedule == "*/15 * * * *"
    assert all(not j.allow_overlap for j in jobs)


def test_bad_service_schedule_does_not_stop_other_jobs(db):
    config = parse_config({
        "services": [
            {"service": "web", "url": "https://example.com", "okStatusCode": 200, "schedule": "whenever"},
            {"service": "api", "url": "https://api.example.com", "okStatusCode": 200, "schedule": "every minute"},
        ],
    })

    async def scenario():
        scheduler = Scheduler(build_jobs(config, db, Settings()))
        scheduler.start()
        await asyncio.sleep(0)
        described = {d["name"]: d for d in scheduler.describe()}
        scheduler.stop()
        return described

    described = asyncio.run(scenario())
    assert described["health-web"]["enabled"] is False
    assert described["health-api"]["enabled"] is True
    assert described["cleanup"]["enabled"] is True


def test_health_jobs_get_ssl_setting(db, monkeypatch):
    monkeypatch.setenv("HTTP_SSL_VERIFY", "false")
    settings = from_env()
    assert settings.http_ssl_verify is False

    config = parse_config({"services": [{"service": "web", "url": "https://example.com", "okStatusCode": 200, "schedule": "every minute"}]})
    [health, _cleanup] = build_jobs(config, db, settings)
    assert health.action.keywords["ssl_verify"] is False
    assert build_jobs(config, db, Settings())[0].action.keywords["ssl_verify"] is True


def test_ssl_verify_defaults_to_on(monkeypatch):
    monkeypatch.delenv("HTTP_SSL_VERIFY", raising=False)
    assert from_env().http_ssl_verify is True
