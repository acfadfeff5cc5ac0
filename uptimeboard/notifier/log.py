from __future__ import annotations

import logging

from .base import Notifier
from .types import Alert


_level_map = {
	"info": logging.INFO,
	"warn": logging.WARN,
	"error": logging.ERROR,
}


class LogNotifier(Notifier):
	def __init__(self, target: str | None = None) -> None:
		self._logger = logging.getLogger("notifier.log")
		self._target = target

	async def send(self, alert: Alert) -> None:
		lvl = _level_map.get(alert.level, logging.INFO)
		self._logger.log(
			lvl,
			"title=%s, msg=%s, ts=%s",
			alert.title,
			alert.message,
			alert.ts.isoformat(),
			extra={"target": self._target},
		)
