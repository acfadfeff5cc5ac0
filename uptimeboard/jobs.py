from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Iterable, Optional

from uptimeboard.checker import DEFAULT_TIMEOUT_S, URLChecker, check_service
from uptimeboard.config import Config, NtfyTarget, ServiceDefinition, WebhookTarget
from uptimeboard.db import Database, EventStore, NotificationStore
from uptimeboard.heartbeat import HeartbeatPinger
from uptimeboard.metrics import record_check, record_cleanup, record_heartbeat, record_notification
from uptimeboard.notifier import Alert, Notifier, build_notifier, format_notification_message
from uptimeboard.scheduler import Job
from uptimeboard.settings import Settings

logger = logging.getLogger(__name__)

_NEVER = datetime.fromtimestamp(0, timezone.utc)


async def health_check(
	service: ServiceDefinition,
	events: EventStore,
	*,
	timeout_s: int = DEFAULT_TIMEOUT_S,
	ssl_verify: bool = True,
) -> Optional[dict]:
	"""Одна проверка сервиса -> ровно одно событие. Исключения наружу не выходят."""
	try:
		async with URLChecker(max_concurrent=1, ssl_verify=ssl_verify) as checker:
			result = await check_service(service, checker, timeout_s)
	except Exception as e:
		logger.exception("Error checking %s", service.service, extra={"service": service.service})
		result = {"ok": False, "status_code": None, "latency_ms": None, "error_text": str(e)}
	ok = bool(result.get("ok"))
	latency = result.get("latency_ms") if ok else None
	record_check(service.service, ok=ok, latency_value_ms=latency)
	try:
		return events.record(service.service, ok=ok, latency=latency)
	except Exception:
		logger.exception("Could not store event for %s", service.service, extra={"service": service.service})
		return None


def _alert_for(target: NtfyTarget | WebhookTarget, message: str) -> Alert:
	if isinstance(target, NtfyTarget):
		return Alert(title=target.title, message=message, tags=target.tags)
	if isinstance(target, WebhookTarget):
		return Alert(title="Service down", message=message)
	raise TypeError(f"unsupported notify target: {type(target).__name__}")


async def notify(
	target: NtfyTarget | WebhookTarget,
	events: EventStore,
	notifications: NotificationStore,
	service_names: Iterable[str],
	sink: Notifier,
	*,
	now: Optional[datetime] = None,
) -> bool:
	"""Оповестить о недоступных сервисах не чаще, чем раз в minutes_between.

	Возвращает True, если было принято решение отправить. Запись о
	уведомлении сохраняется до отправки: сбой доставки не приводит к
	повтору раньше следующего окна.
	"""
	statuses = events.current_statuses(service_names)
	message = format_notification_message(statuses)
	if message is None:
		logger.info("Notify: no services down", extra={"target": target.key})
		return False

	now = now or datetime.now(timezone.utc)
	latest = notifications.latest(target.key)
	last_ts = latest["timestamp"] if latest is not None else _NEVER
	minutes_since = (now - last_ts).total_seconds() / 60

	if minutes_since <= target.minutes_between:
		logger.info(
			"Notify: %.1f minutes since last notification, waiting until %s",
			minutes_since,
			target.minutes_between,
			extra={"target": target.key},
		)
		return False

	logger.info("Notify: sending message [%s]", message, extra={"target": target.key})
	notifications.record(message, target=target.key, timestamp=now)
	try:
		await sink.send(_alert_for(target, message))
		record_notification(target.key, "sent")
	except Exception as e:
		# не ретраим: следующий цикл после окна отправит заново
		logger.error("Notify: delivery to %s failed: %s", target.key, e, extra={"target": target.key})
		record_notification(target.key, "failed")
	return True


async def heartbeat(pinger: HeartbeatPinger, events: EventStore, service_names: Iterable[str]) -> Optional[str]:
	statuses = events.current_statuses(service_names)
	everything_ok = all(s["ok"] for s in statuses)
	try:
		url = await pinger.ping(everything_ok)
	except Exception as e:
		logger.error("Heartbeat error: %s", e)
		record_heartbeat("failed")
		return None
	if url is None:
		logger.info("Some service is down, postponing heartbeat ping")
		record_heartbeat("skipped")
	elif everything_ok:
		logger.info("Everything OK, pinged heartbeat")
		record_heartbeat("ok")
	else:
		logger.info("Some service is down, sent failure ping")
		record_heartbeat("fail")
	return url


async def cleanup(events: EventStore, *, hours: int = 24, now: Optional[datetime] = None) -> int:
	"""Удалить события старше hours часов."""
	cutoff = (now or datetime.now(timezone.utc)) - timedelta(hours=hours)
	deleted = events.delete_older_than(cutoff)
	record_cleanup(deleted)
	logger.info("Removed %s events older than %s", deleted, cutoff.isoformat())
	return deleted


def build_jobs(config: Config, db: Database, settings: Settings) -> list[Job]:
	"""Собрать задачи планировщика из конфига."""
	jobs: list[Job] = []
	for service in config.services:
		jobs.append(Job(
			name=f"health-{service.service}",
			schedule=service.schedule,
			action=partial(
				health_check,
				service,
				db.events,
				timeout_s=settings.check_timeout_s,
				ssl_verify=settings.http_ssl_verify,
			),
		))
	jobs.append(Job(
		name="cleanup",
		schedule=settings.retention_schedule,
		action=partial(cleanup, db.events, hours=settings.retention_hours),
	))
	if config.heartbeat is not None:
		jobs.append(Job(
			name="heartbeat",
			schedule=config.heartbeat.schedule,
			action=partial(heartbeat, HeartbeatPinger(config.heartbeat), db.events, config.service_names),
		))
	for target in config.notify:
		jobs.append(Job(
			name=f"notify-{target.type}-{target.key}",
			schedule=target.schedule,
			action=partial(notify, target, db.events, db.notifications, config.service_names, build_notifier(target)),
		))
	return jobs
