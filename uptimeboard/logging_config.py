from __future__ import annotations

import json
import logging
from typing import Any

# поля, которые можно передать через extra={...} и увидеть в JSON
_EXTRA_FIELDS = ("service", "job", "target")


class JsonFormatter(logging.Formatter):
	def format(self, record: logging.LogRecord) -> str:
		payload: dict[str, Any] = {
			"level": record.levelname,
			"logger": record.name,
			"msg": record.getMessage(),
			"time": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
		}
		for name in _EXTRA_FIELDS:
			value = getattr(record, name, None)
			if value is not None:
				payload[name] = value
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		return json.dumps(payload, ensure_ascii=False)


def setup_logging(level: str = "INFO", use_json: bool = False) -> None:
	"""Инициализация корневого логгера; JSON-формат для контейнеров."""
	root = logging.getLogger()
	root.setLevel(level.upper())
	# убрать обработчики, оставленные uvicorn/pytest
	for h in list(root.handlers):
		root.removeHandler(h)
		h.close()
	handler = logging.StreamHandler()
	if use_json:
		handler.setFormatter(JsonFormatter())
	else:
		handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s"))
	root.addHandler(handler)
	# aiohttp шумит на DEBUG
	logging.getLogger("aiohttp").setLevel(logging.WARNING)
