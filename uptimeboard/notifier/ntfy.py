from __future__ import annotations

import aiohttp

from .base import DeliveryError, Notifier
from .types import Alert


class NtfyNotifier(Notifier):
	"""POST текста сообщения в топик ntfy.sh (или собственного сервера ntfy)."""
	def __init__(self, topic: str, *, server: str = "https://ntfy.sh", connect_timeout_s: float = 3.0, read_timeout_s: float = 7.0) -> None:
		self._url = f"{server.rstrip('/')}/{topic}"
		self._timeout = aiohttp.ClientTimeout(connect=connect_timeout_s, total=connect_timeout_s + read_timeout_s)

	@property
	def url(self) -> str:
		return self._url

	async def send(self, alert: Alert) -> None:
		headers = {"Title": alert.title, "Tags": alert.tags}
		async with aiohttp.ClientSession(timeout=self._timeout) as session:
			async with session.post(self._url, data=alert.message.encode("utf-8"), headers=headers) as resp:
				if resp.status >= 400:
					raise DeliveryError(f"ntfy responded with {resp.status}")
