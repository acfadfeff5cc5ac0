"""Планировщик периодических задач.

Каждое выражение расписания разбирается один раз при старте. Ошибка
разбора отключает задачу (с предупреждением в логе), остальные задачи
продолжают работать. Пропущенные срабатывания не догоняются: следующее
время всегда считается от текущего момента.
"""
import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from typing import Awaitable, Callable, Iterable, Optional

from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

_TEXT_RE = re.compile(r"^every\s+(?:(\d+)\s+)?(seconds?|secs?|minutes?|mins?|hours?|days?)$", re.IGNORECASE)
_UNIT_SECONDS = {"sec": 1, "second": 1, "min": 60, "minute": 60, "hour": 3600, "day": 86400}
_EPSILON = timedelta(microseconds=1)
_CRON_DAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")
_DOW_RE = re.compile(r"^(\*|\d+)(?:-(\d+))?(?:/(\d+))?$")


class ScheduleError(ValueError):
	pass


class Schedule:
	"""Разобранное расписание: отдаёт только время следующего срабатывания."""

	def __init__(self, expression: str, trigger: BaseTrigger) -> None:
		self.expression = expression
		self._trigger = trigger

	def next_fire(self, after: datetime) -> Optional[datetime]:
		# строго после after, чтобы не сработать дважды в одну и ту же секунду
		return self._trigger.get_next_fire_time(None, after + _EPSILON)

	def __repr__(self) -> str:
		return f"Schedule({self.expression!r})"


def parse_schedule(expression: str, tz: str = "UTC") -> Schedule:
	"""Crontab из 5 полей ("*/10 * * * *"), из 6 с секундами впереди ("*/30 * * * * *")
	или текст ("every 5 minutes")."""
	expr = " ".join(str(expression).strip().split())
	if not expr:
		raise ScheduleError("empty schedule expression")
	m = _TEXT_RE.match(expr)
	if m:
		count = int(m.group(1) or 1)
		if count < 1:
			raise ScheduleError(f"interval must be positive: {expression!r}")
		unit = m.group(2).lower().rstrip("s")
		return Schedule(expr, IntervalTrigger(seconds=count * _UNIT_SECONDS[unit], timezone=tz))
	fields = expr.split(" ")
	if len(fields) in (5, 6):
		try:
			return Schedule(expr, _cron_trigger(fields, tz))
		except ValueError as e:
			raise ScheduleError(f"invalid cron expression {expression!r}: {e}") from e
	raise ScheduleError(
		f"unsupported schedule expression: {expression!r} "
		"(expected 5 or 6 cron fields, or 'every N seconds|minutes|hours|days')"
	)


def _cron_trigger(fields: list[str], tz: str) -> CronTrigger:
	# 6 полей: первым идут секунды
	second = fields[0] if len(fields) == 6 else "0"
	minute, hour, day, month, day_of_week = fields[-5:]
	return CronTrigger(
		second=second,
		minute=minute,
		hour=hour,
		day=day,
		month=month,
		day_of_week=crontab_day_of_week(day_of_week),
		timezone=tz,
	)


def crontab_day_of_week(field: str) -> str:
	"""Дни недели crontab (0 и 7 = воскресенье) -> имена дней.

	APScheduler считает 0 понедельником, поэтому числа переводятся в имена.
	Имена (mon-fri) в обеих нотациях значат одно и то же и остаются как есть.
	"""
	if field == "*":
		return field
	days: list[str] = []
	for part in field.split(","):
		m = _DOW_RE.match(part)
		if m is None:
			days.append(part.lower())
			continue
		start, end, step = m.groups()
		if start == "*":
			if end is not None:
				raise ScheduleError(f"invalid day of week: {part!r}")
			lo, hi = 0, 6
		else:
			lo = int(start)
			hi = int(end) if end is not None else (6 if step else lo)
		stride = int(step) if step else 1
		if not (0 <= lo <= 7 and 0 <= hi <= 7) or lo > hi or stride < 1:
			raise ScheduleError(f"invalid day of week: {part!r}")
		for n in range(lo, hi + 1, stride):
			name = _CRON_DAYS[n % 7]
			if name not in days:
				days.append(name)
	return ",".join(days)


@dataclass
class Job:
	name: str
	schedule: str
	action: Callable[[], Awaitable[None]]
	# True: новое срабатывание запускается, даже если предыдущее ещё идёт
	allow_overlap: bool = False


class Scheduler:
	def __init__(self, jobs: Iterable[Job], *, tz: str = "UTC") -> None:
		self._jobs = list(jobs)
		self._tz = tz
		self._stop_event = asyncio.Event()
		self._schedules: dict[str, Optional[Schedule]] = {}
		self._errors: dict[str, str] = {}
		self._next_fire: dict[str, Optional[datetime]] = {}
		self._running: dict[str, set[asyncio.Task]] = {}
		self._timers: list[asyncio.Task] = []
		self._started = False

	@property
	def jobs(self) -> list[Job]:
		return list(self._jobs)

	def _parse_all(self) -> None:
		for job in self._jobs:
			try:
				self._schedules[job.name] = parse_schedule(job.schedule, self._tz)
			except ScheduleError as e:
				self._schedules[job.name] = None
				self._errors[job.name] = str(e)
				logger.warning("Job %s disabled: %s", job.name, e, extra={"job": job.name})

	def start(self) -> None:
		"""Запустить таймеры задач; вызывать внутри работающего event loop."""
		if self._started:
			return
		self._started = True
		self._parse_all()
		for job in self._jobs:
			schedule = self._schedules.get(job.name)
			if schedule is None:
				continue
			self._timers.append(asyncio.create_task(self._timer(job, schedule), name=f"timer:{job.name}"))
			logger.info("Started job %s (%s)", job.name, schedule.expression, extra={"job": job.name})

	async def run(self) -> None:
		self.start()
		await self._stop_event.wait()
		self._cancel_timers()
		await asyncio.gather(*self._timers, return_exceptions=True)
		logger.info("Scheduler stopped")

	def stop(self) -> None:
		"""Остановить таймеры. Уже выполняющиеся задачи не прерываются."""
		self._stop_event.set()
		self._cancel_timers()

	def _cancel_timers(self) -> None:
		for t in self._timers:
			if not t.done():
				t.cancel()

	async def _timer(self, job: Job, schedule: Schedule) -> None:
		last_fire: Optional[datetime] = None
		while not self._stop_event.is_set():
			now = datetime.now(timezone.utc)
			fire_at = schedule.next_fire(max(now, last_fire) if last_fire else now)
			self._next_fire[job.name] = fire_at
			if fire_at is None:
				logger.info("Job %s has no further fire times", job.name, extra={"job": job.name})
				return
			delay = max(0.0, (fire_at - now).total_seconds())
			try:
				await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
				return
			except asyncio.TimeoutError:
				pass
			last_fire = fire_at
			self._dispatch(job)

	def _dispatch(self, job: Job) -> None:
		running = self._running.setdefault(job.name, set())
		if running and not job.allow_overlap:
			logger.warning("Job %s is still running, skipping this firing", job.name, extra={"job": job.name})
			return
		task = asyncio.create_task(self._invoke(job), name=f"job:{job.name}")
		running.add(task)
		task.add_done_callback(running.discard)

	async def _invoke(self, job: Job) -> None:
		try:
			await job.action()
		except Exception:
			# ошибка задачи не должна останавливать её таймер
			logger.exception("Job %s failed", job.name, extra={"job": job.name})

	def in_flight(self, name: Optional[str] = None) -> int:
		if name is not None:
			return len(self._running.get(name, ()))
		return sum(len(s) for s in self._running.values())

	async def wait_in_flight(self, timeout: Optional[float] = None) -> None:
		"""Дождаться выполняющихся задач (best-effort при остановке)."""
		tasks = [t for s in self._running.values() for t in s]
		if tasks:
			await asyncio.wait(tasks, timeout=timeout)

	def describe(self) -> list[dict]:
		out = []
		for job in self._jobs:
			next_fire = self._next_fire.get(job.name)
			out.append({
				"name": job.name,
				"schedule": job.schedule,
				"enabled": self._schedules.get(job.name) is not None if self._started else None,
				"error": self._errors.get(job.name),
				"nextFire": next_fire.isoformat() if next_fire else None,
				"running": self.in_flight(job.name),
			})
		return out
