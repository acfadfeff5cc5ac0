from __future__ import annotations

import logging

from sqlalchemy.engine import Engine

from .models import Base

logger = logging.getLogger(__name__)


def main(engine: Engine) -> None:
	"""Создать таблицы event и notification, если их ещё нет."""
	Base.metadata.create_all(engine)
	logger.info("Database schema ready: %s", ", ".join(sorted(Base.metadata.tables)))
