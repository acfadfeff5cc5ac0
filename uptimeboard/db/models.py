from sqlalchemy import (
    create_engine,
    Integer,
    Boolean,
    String,
    DateTime,
    Column,
    Index,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from datetime import datetime, timezone

MESSAGE_MAX_LEN = 1024

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Event(Base):
    __tablename__ = "event"
    id = Column(Integer, primary_key=True)
    # имя сервиса из конфига, без внешнего ключа: сервисы живут в файле
    service = Column(String(200), nullable=False)
    ok = Column(Boolean, nullable=False)
    latency = Column(Integer, nullable=True)
    created = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("idx_event_service_created", "service", "created"),
        Index("idx_event_created", "created"),
    )


class Notification(Base):
    __tablename__ = "notification"
    id = Column(Integer, primary_key=True)
    message = Column(String(MESSAGE_MAX_LEN), nullable=False)
    timestamp = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    target = Column(String(2048), nullable=True)

    __table_args__ = (Index("idx_notification_target_timestamp", "target", "timestamp"),)


def make_engine(db_url: str) -> Engine:
    return create_engine(db_url, pool_pre_ping=True, future=True)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)
