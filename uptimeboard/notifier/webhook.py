from __future__ import annotations

import aiohttp
from .base import DeliveryError, Notifier
from .types import Alert


class WebhookNotifier(Notifier):
	"""Простой отправитель уведомлений через HTTP Webhook."""
	def __init__(self, url: str, *, connect_timeout_s: float = 3.0, read_timeout_s: float = 7.0) -> None:
		self._url = url
		self._timeout = aiohttp.ClientTimeout(connect=connect_timeout_s, total=connect_timeout_s + read_timeout_s)

	async def send(self, alert: Alert) -> None:
		"""Отправить уведомление в виде JSON на указанный URL."""
		payload = {
			"level": alert.level,
			"title": alert.title,
			"message": alert.message,
			"tags": alert.tags,
			"ts": alert.ts.isoformat(),
		}
		async with aiohttp.ClientSession(timeout=self._timeout) as s:
			async with s.post(self._url, json=payload) as resp:
				if resp.status >= 400:
					raise DeliveryError(f"webhook responded with {resp.status}")
