from __future__ import annotations

import abc
import logging
from typing import Iterable

from .types import Alert

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
	"""Канал не принял уведомление."""


class Notifier(abc.ABC):
	@abc.abstractmethod
	async def send(self, alert: Alert) -> None:
		...


class CompositeNotifier(Notifier):
	"""Отправить во все каналы; ошибка одного канала не мешает остальным."""

	def __init__(self, channels: Iterable[Notifier]):
		self._channels = list(channels)

	@property
	def channels(self) -> list[Notifier]:
		return list(self._channels)

	async def send(self, alert: Alert) -> None:
		failed: list[str] = []
		for ch in self._channels:
			try:
				await ch.send(alert)
			except Exception as e:
				logger.warning("Notification channel %s failed: %s", type(ch).__name__, e)
				failed.append(type(ch).__name__)
		if failed:
			raise DeliveryError(f"delivery failed for: {', '.join(failed)}")
