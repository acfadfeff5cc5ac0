from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import Engine

from .init_db import main as init_db
from .models import make_engine, make_session_factory
from .repo import EventStore, NotificationStore


@dataclass
class Database:
	"""Хранилище процесса: создаётся в точке входа и передаётся компонентам явно."""
	engine: Engine
	events: EventStore
	notifications: NotificationStore

	@classmethod
	def connect(cls, db_url: str) -> "Database":
		engine = make_engine(db_url)
		factory = make_session_factory(engine)
		return cls(engine=engine, events=EventStore(factory), notifications=NotificationStore(factory))

	def create_schema(self) -> None:
		init_db(self.engine)

	def close(self) -> None:
		self.engine.dispose()


__all__ = ["Database", "EventStore", "NotificationStore"]
