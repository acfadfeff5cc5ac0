from __future__ import annotations

import logging
from typing import Optional

import aiohttp

from uptimeboard.config import HealthchecksIoHeartbeat, UrlHeartbeat
from uptimeboard.notifier import DeliveryError

logger = logging.getLogger(__name__)


def heartbeat_url(heartbeat: HealthchecksIoHeartbeat | UrlHeartbeat, everything_ok: bool) -> Optional[str]:
	"""URL для пинга; None, если в этом цикле пинговать не нужно."""
	if isinstance(heartbeat, HealthchecksIoHeartbeat):
		base = f"{heartbeat.base_url.rstrip('/')}/{heartbeat.uuid}"
		if everything_ok:
			return base
		# отдельный fail-пинг включается в конфиге, иначе просто молчим
		return f"{base}/fail" if heartbeat.fail_ping else None
	if isinstance(heartbeat, UrlHeartbeat):
		return heartbeat.url if everything_ok else None
	raise TypeError(f"unsupported heartbeat: {type(heartbeat).__name__}")


class HeartbeatPinger:
	def __init__(self, heartbeat: HealthchecksIoHeartbeat | UrlHeartbeat, *, connect_timeout_s: float = 3.0, read_timeout_s: float = 7.0) -> None:
		self._heartbeat = heartbeat
		self._timeout = aiohttp.ClientTimeout(connect=connect_timeout_s, total=connect_timeout_s + read_timeout_s)

	async def ping(self, everything_ok: bool) -> Optional[str]:
		url = heartbeat_url(self._heartbeat, everything_ok)
		if url is None:
			return None
		async with aiohttp.ClientSession(timeout=self._timeout) as session:
			async with session.get(url) as resp:
				if resp.status >= 400:
					raise DeliveryError(f"heartbeat endpoint responded with {resp.status}")
		return url
