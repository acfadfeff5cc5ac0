from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import and_, func, text
from sqlalchemy.orm import sessionmaker

from .models import Event, Notification, MESSAGE_MAX_LEN


def _ensure_utc(ts: datetime) -> datetime:
    """Гарантировать, что datetime имеет таймзону UTC (SQLite отдаёт naive)."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    elif ts.tzinfo != timezone.utc:
        return ts.astimezone(timezone.utc)
    else:
        return ts


def _event_dict(e: Event) -> dict:
    return {
        "id": e.id,
        "service": e.service,
        "ok": e.ok,
        "latency": e.latency,
        "created": _ensure_utc(e.created),
    }


def _notification_dict(n: Notification) -> dict:
    return {
        "id": n.id,
        "message": n.message,
        "timestamp": _ensure_utc(n.timestamp),
        "target": n.target,
    }


class EventStore:
    """Журнал результатов проверок. Каждая запись пишется отдельной транзакцией."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def record(
        self,
        service: str,
        ok: bool,
        latency: int | None = None,
        created: datetime | None = None,
    ) -> dict:
        """Добавить одно событие. Задержка хранится только для успешных проверок."""
        with self._session_factory() as session:
            event = Event(
                service=service,
                ok=ok,
                latency=latency if ok else None,
                created=_ensure_utc(created or datetime.now(timezone.utc)),
            )
            session.add(event)
            session.commit()
            return _event_dict(event)

    def bulk_record(self, rows: Iterable[dict]) -> int:
        """Вставить много событий одной транзакцией (генерация тестовых данных)."""
        with self._session_factory() as session:
            objs = [
                Event(
                    service=r["service"],
                    ok=r["ok"],
                    latency=r.get("latency") if r["ok"] else None,
                    created=_ensure_utc(r["created"]),
                )
                for r in rows
            ]
            session.add_all(objs)
            session.commit()
            return len(objs)

    def latest_status_per_service(self) -> list[dict]:
        """Последнее событие по каждому сервису.

        При совпадении времени у нескольких событий одного сервиса
        возвращается любое из них.
        """
        with self._session_factory() as session:
            latest = (
                session.query(Event.service, func.max(Event.created).label("max_created"))
                .group_by(Event.service)
                .subquery()
            )
            rows = (
                session.query(Event)
                .join(
                    latest,
                    and_(Event.service == latest.c.service, Event.created == latest.c.max_created),
                )
                .order_by(Event.service, Event.id.desc())
                .all()
            )
            result: dict[str, dict] = {}
            for row in rows:
                result.setdefault(row.service, _event_dict(row))
            return list(result.values())

    def current_statuses(self, service_names: Iterable[str]) -> list[dict]:
        """Последние статусы только для сервисов из текущего конфига."""
        wanted = set(service_names)
        return [e for e in self.latest_status_per_service() if e["service"] in wanted]

    def query_range(self, service: str, since: datetime, ascending: bool = True) -> list[dict]:
        with self._session_factory() as session:
            order = Event.created.asc() if ascending else Event.created.desc()
            rows = (
                session.query(Event)
                .filter(Event.service == service, Event.created >= _ensure_utc(since))
                .order_by(order, Event.id.asc() if ascending else Event.id.desc())
                .all()
            )
            return [_event_dict(r) for r in rows]

    def average_latency(self, service: str) -> float | None:
        """Средняя задержка по событиям с задержкой (ошибки не учитываются)."""
        with self._session_factory() as session:
            result = (
                session.query(func.avg(Event.latency))
                .filter(Event.service == service, Event.latency.isnot(None))
                .scalar()
            )
            return float(result) if result is not None else None

    def uptime(self, service: str, since: datetime) -> float | None:
        """Аптайм в процентах 0..100 начиная с since; None, если событий нет."""
        with self._session_factory() as session:
            total_query = session.query(Event).filter(
                Event.service == service, Event.created >= _ensure_utc(since)
            )
            total = total_query.count()
            if total == 0:
                return None
            success = total_query.filter(Event.ok.is_(True)).count()
            return 100.0 * success / total

    def delete_older_than(self, cutoff: datetime) -> int:
        """Удалить события старше cutoff. Возвращает количество удалённых."""
        with self._session_factory() as session:
            q = session.query(Event).filter(Event.created < _ensure_utc(cutoff))
            count = q.delete(synchronize_session=False)
            session.commit()
            return count

    def delete_all(self) -> int:
        with self._session_factory() as session:
            count = session.query(Event).delete(synchronize_session=False)
            session.commit()
            return count

    def ping(self) -> None:
        with self._session_factory() as session:
            session.execute(text("select 1"))


class NotificationStore:
    """Отправленные уведомления; нужны для подавления повторов."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def record(self, message: str, target: str | None = None, timestamp: datetime | None = None) -> dict:
        with self._session_factory() as session:
            notification = Notification(
                message=message[:MESSAGE_MAX_LEN],
                target=target,
                timestamp=_ensure_utc(timestamp or datetime.now(timezone.utc)),
            )
            session.add(notification)
            session.commit()
            return _notification_dict(notification)

    def latest(self, target: str | None = None) -> dict | None:
        """Самое свежее уведомление; с target ищется только по этому каналу."""
        with self._session_factory() as session:
            q = session.query(Notification)
            if target is not None:
                q = q.filter(Notification.target == target)
            row = q.order_by(Notification.timestamp.desc(), Notification.id.desc()).first()
            return _notification_dict(row) if row is not None else None
