import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Literal, Optional

from fastapi import Depends, FastAPI, HTTPException, Path, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from uptimeboard import __version__
from uptimeboard.config import Config
from uptimeboard.db import Database
from uptimeboard.metrics import render_metrics
from uptimeboard.nodes import fetch_nodes
from uptimeboard.scheduler import Scheduler
from uptimeboard.settings import Settings

logger = logging.getLogger(__name__)

ServiceStatus = Literal["ok", "failing", "unknown"]

_SHOW: dict[str, tuple[str, ...]] = {
	"all": ("ok", "failing", "unknown"),
	"failing": ("failing",),
	"unknown": ("unknown",),
}


class ErrorResponse(BaseModel):
	code: str
	message: str


class EventOut(BaseModel):
	service: str
	ok: bool
	latency: Optional[int] = None
	created: datetime


class ServiceRow(BaseModel):
	name: str
	url: str
	status: ServiceStatus
	averageLatency: Optional[float] = None
	uptime: Optional[float] = None
	events: List[EventOut]


def dashboard_since(now: Optional[datetime] = None) -> datetime:
	"""Сутки назад, округлённые вверх до начала следующего часа."""
	since = (now or datetime.now(timezone.utc)) - timedelta(days=1)
	return since.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)


def service_status(last_event: Optional[dict]) -> ServiceStatus:
	if last_event is None:
		return "unknown"
	return "ok" if last_event["ok"] else "failing"


def get_db(request: Request) -> Database:
	return request.app.state.db


def get_config(request: Request) -> Config:
	return request.app.state.config


def create_app(config: Config, db: Database, settings: Settings, scheduler: Optional[Scheduler] = None) -> FastAPI:
	"""Собрать приложение; хранилище и планировщик создаются в точке входа."""
	app = FastAPI(title="uptimeboard API", description="Service uptime dashboard", version=__version__)
	app.state.config = config
	app.state.db = db
	app.state.settings = settings
	app.state.scheduler = scheduler
	app.state.scheduler_task = None

	app.add_middleware(
		CORSMiddleware,
		allow_origins=["*"],
		allow_methods=["GET"],
		allow_headers=["*"],
	)

	@app.exception_handler(HTTPException)
	async def http_exception_handler(request: Request, exc: HTTPException):
		return JSONResponse(status_code=exc.status_code, content=ErrorResponse(code=str(exc.status_code), message=str(exc.detail)).model_dump())

	@app.exception_handler(RequestValidationError)
	async def validation_exception_handler(request: Request, exc: RequestValidationError):
		return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=ErrorResponse(code="400", message="validation error").model_dump())

	@app.on_event("startup")
	async def on_startup():
		if app.state.scheduler is not None:
			app.state.scheduler_task = asyncio.create_task(app.state.scheduler.run())

	@app.on_event("shutdown")
	async def on_shutdown():
		sched: Optional[Scheduler] = app.state.scheduler
		if sched is not None:
			sched.stop()
		task = app.state.scheduler_task
		if task is not None:
			try:
				await asyncio.wait_for(task, timeout=5)
			except asyncio.TimeoutError:
				logger.warning("Scheduler did not stop within 5s")

	@app.get("/health")
	def health(db: Database = Depends(get_db)):
		try:
			db.events.ping()
		except Exception:
			logger.exception("Database ping failed")
			raise HTTPException(status_code=503, detail="db not ready")
		return {"status": "ok"}

	@app.get("/metrics", include_in_schema=False)
	def metrics_endpoint():
		payload, content_type = render_metrics()
		return PlainTextResponse(payload.decode("utf-8"), media_type=content_type)

	@app.get("/api/health")
	def api_health(db: Database = Depends(get_db), cfg: Config = Depends(get_config)):
		version = settings.version
		try:
			statuses = db.events.current_statuses(cfg.service_names)
		except Exception:
			logger.exception("Could not retrieve events from database")
			return JSONResponse(
				status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
				content={"version": version, "message": "Could not retrieve events from database"},
			)
		operational = all(s["ok"] for s in statuses)
		content: dict = {"version": version, "operational": operational}
		if not operational:
			content["statuses"] = [EventOut(**s).model_dump() for s in statuses]
		return JSONResponse(
			status_code=status.HTTP_200_OK if operational else status.HTTP_500_INTERNAL_SERVER_ERROR,
			content=jsonable_encoder(content),
		)

	@app.get("/api/services", response_model=List[ServiceRow])
	def list_services(
		show: Literal["all", "failing", "unknown"] = Query("all"),
		db: Database = Depends(get_db),
		cfg: Config = Depends(get_config),
	):
		since = dashboard_since()
		rows: list[ServiceRow] = []
		for service in sorted(cfg.services, key=lambda s: s.service):
			events = db.events.query_range(service.service, since)
			row = ServiceRow(
				name=service.service,
				url=service.url,
				status=service_status(events[-1] if events else None),
				averageLatency=db.events.average_latency(service.service),
				uptime=db.events.uptime(service.service, since),
				events=[EventOut(**e) for e in events],
			)
			if row.status in _SHOW[show]:
				rows.append(row)
		return rows

	@app.get("/api/services/{name}/events", response_model=List[EventOut])
	def service_events(
		name: str = Path(min_length=1),
		hours: int = Query(24, ge=1, le=24 * 7),
		db: Database = Depends(get_db),
		cfg: Config = Depends(get_config),
	):
		if name not in cfg.service_names:
			raise HTTPException(status_code=404, detail="service not found")
		since = datetime.now(timezone.utc) - timedelta(hours=hours)
		return [EventOut(**e) for e in db.events.query_range(name, since)]

	@app.get("/api/config")
	def show_config(cfg: Config = Depends(get_config)):
		sched: Optional[Scheduler] = app.state.scheduler
		return {**cfg.public_dict(), "jobs": sched.describe() if sched is not None else []}

	@app.get("/api/nodes")
	async def nodes(cfg: Config = Depends(get_config)):
		return {"nodes": await fetch_nodes(cfg.nodes)}

	return app
