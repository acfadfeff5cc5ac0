from __future__ import annotations

from typing import Optional

from prometheus_client import Counter, Histogram, CONTENT_TYPE_LATEST, generate_latest

# Глобальный реестр метрик (используется по умолчанию)

checks_total = Counter(
	"uptimeboard_checks_total",
	"Количество проверок сервисов",
	labelnames=("service", "outcome"),
)

latency_ms = Histogram(
	"uptimeboard_latency_ms",
	"Задержка успешной проверки в миллисекундах",
	buckets=(50, 100, 200, 300, 500, 750, 1000, 1500, 2000, 3000, 5000, 10000),
	labelnames=("service",),
)

notifications_total = Counter(
	"uptimeboard_notifications_total",
	"Отправленные уведомления о недоступности",
	labelnames=("target", "outcome"),
)

heartbeats_total = Counter(
	"uptimeboard_heartbeats_total",
	"Пинги heartbeat",
	labelnames=("outcome",),
)

events_deleted_total = Counter(
	"uptimeboard_events_deleted_total",
	"События, удалённые очисткой по возрасту",
)


def record_check(service: str, *, ok: bool, latency_value_ms: Optional[int]) -> None:
	"""Записать метрики Prometheus для одной проверки."""
	checks_total.labels(service=service, outcome=("success" if ok else "failure")).inc()
	if ok and latency_value_ms is not None:
		latency_ms.labels(service=service).observe(max(0.0, float(latency_value_ms)))


def record_notification(target: str, outcome: str) -> None:
	notifications_total.labels(target=target, outcome=outcome).inc()


def record_heartbeat(outcome: str) -> None:
	heartbeats_total.labels(outcome=outcome).inc()


def record_cleanup(deleted: int) -> None:
	if deleted > 0:
		events_deleted_total.inc(deleted)


def render_metrics() -> tuple[bytes, str]:
	"""Вернуть полезную нагрузку метрик и тип контента для FastAPI-роута."""
	return generate_latest(), CONTENT_TYPE_LATEST
