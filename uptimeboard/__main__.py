"""Точка входа: python -m uptimeboard serve|check-config|seed."""
import argparse
import logging
import sys

import uvicorn

from uptimeboard.config import Config, ConfigError, load_config
from uptimeboard.db import Database
from uptimeboard.jobs import build_jobs
from uptimeboard.logging_config import setup_logging
from uptimeboard.main import create_app
from uptimeboard.scheduler import Scheduler
from uptimeboard.seed import generate_test_data
from uptimeboard.settings import Settings, from_env

logger = logging.getLogger("uptimeboard")


def _load_or_exit(path: str) -> Config:
	try:
		return load_config(path)
	except ConfigError as e:
		logger.error("%s", e)
		sys.exit(1)


def serve(args: argparse.Namespace, settings: Settings) -> None:
	config = _load_or_exit(args.config)
	db = Database.connect(settings.db_url)
	db.create_schema()
	scheduler = Scheduler(build_jobs(config, db, settings), tz=settings.schedule_timezone)
	for service in config.services:
		logger.info("Service %s (%s) -> %s", service.service, service.schedule, service.url)
	if config.heartbeat is not None:
		logger.info("Heartbeat %s activated (%s)", config.heartbeat.type, config.heartbeat.schedule)
	for target in config.notify:
		logger.info("Notify %s %s activated (%s)", target.type, target.key, target.schedule)
	app = create_app(config, db, settings, scheduler)
	try:
		uvicorn.run(app, host=args.host or settings.host, port=args.port or settings.port, log_config=None)
	finally:
		db.close()


def check_config(args: argparse.Namespace, settings: Settings) -> None:
	config = _load_or_exit(args.config)
	print(f"OK: {len(config.services)} services, {len(config.nodes)} nodes, "
		f"heartbeat={'yes' if config.heartbeat else 'no'}, {len(config.notify)} notify targets")


def seed(args: argparse.Namespace, settings: Settings) -> None:
	config = _load_or_exit(args.config)
	db = Database.connect(settings.db_url)
	try:
		db.create_schema()
		total = generate_test_data(db.events, config.service_names)
		logger.info("Generated %s events", total)
	finally:
		db.close()


def main(argv: list[str] | None = None) -> None:
	settings = from_env()
	setup_logging(settings.log_level, settings.log_json)

	parser = argparse.ArgumentParser(prog="uptimeboard", description="Service uptime dashboard")
	parser.add_argument("--config", default=settings.config_path, help="path to config.json / config.yaml")
	# --config можно указать и после подкоманды
	common = argparse.ArgumentParser(add_help=False)
	common.add_argument("--config", default=argparse.SUPPRESS, help="path to config.json / config.yaml")
	sub = parser.add_subparsers(dest="command", required=True)
	p_serve = sub.add_parser("serve", parents=[common], help="run scheduler and HTTP API")
	p_serve.add_argument("--host", default=None)
	p_serve.add_argument("--port", type=int, default=None)
	p_serve.set_defaults(func=serve)
	sub.add_parser("check-config", parents=[common], help="validate the config file").set_defaults(func=check_config)
	sub.add_parser("seed", parents=[common], help="replace events with 24h of generated data").set_defaults(func=seed)

	args = parser.parse_args(argv)
	args.func(args, settings)


if __name__ == "__main__":
	main()
