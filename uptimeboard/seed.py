from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from uptimeboard.db import EventStore

logger = logging.getLogger(__name__)


def generate_test_data(
	events: EventStore,
	service_names: Iterable[str],
	*,
	now: Optional[datetime] = None,
	step: timedelta = timedelta(minutes=1),
	latency_ms: int = 100,
) -> int:
	"""Заменить все события на сутки успешных проверок (для локальной разработки)."""
	removed = events.delete_all()
	logger.info("Removed %s old events", removed)
	end = now or datetime.now(timezone.utc)
	start = end - timedelta(days=1)
	total = 0
	for service in service_names:
		rows = []
		ts = start
		while ts < end:
			rows.append({"service": service, "ok": True, "latency": latency_ms, "created": ts})
			ts += step
		total += events.bulk_record(rows)
		logger.info("Generated %s events for %s", len(rows), service)
	return total
