from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: str = "false") -> bool:
	return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class Settings:
	"""Настройки процесса. Конфигурация мониторинга живёт отдельно (config.py)."""
	db_url: str = "sqlite+pysqlite:///./data.sqlite"
	config_path: str = "config/config.json"
	log_level: str = "INFO"
	log_json: bool = False
	version: str = "unknown"
	check_timeout_s: int = 10
	http_ssl_verify: bool = True
	retention_hours: int = 24
	retention_schedule: str = "*/10 * * * *"
	schedule_timezone: str = "UTC"
	host: str = "0.0.0.0"
	port: int = 3000


def from_env() -> Settings:
	defaults = Settings()
	try:
		check_timeout_s = int(os.getenv("CHECK_TIMEOUT_S", str(defaults.check_timeout_s)))
		retention_hours = int(os.getenv("RETENTION_HOURS", str(defaults.retention_hours)))
		port = int(os.getenv("PORT", str(defaults.port)))
	except ValueError:
		check_timeout_s, retention_hours, port = defaults.check_timeout_s, defaults.retention_hours, defaults.port
	return Settings(
		db_url=os.getenv("DB_URL", defaults.db_url),
		config_path=os.getenv("CONFIG_PATH", defaults.config_path),
		log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
		log_json=_env_bool("LOG_JSON"),
		version=os.getenv("APP_VERSION", defaults.version),
		check_timeout_s=max(1, check_timeout_s),
		http_ssl_verify=_env_bool("HTTP_SSL_VERIFY", "true"),
		retention_hours=max(1, retention_hours),
		retention_schedule=os.getenv("RETENTION_SCHEDULE", defaults.retention_schedule),
		schedule_timezone=os.getenv("SCHEDULE_TIMEZONE", defaults.schedule_timezone),
		host=os.getenv("HOST", defaults.host),
		port=port,
	)
