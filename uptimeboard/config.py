"""Загрузка и валидация конфигурации мониторинга (JSON или YAML)."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any, Literal, Optional, Union
from urllib.parse import urlparse
from uuid import UUID

import yaml
from pydantic import (
    AfterValidator,
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)


class ConfigError(Exception):
    """Конфигурация не читается или не проходит валидацию."""


def _check_http_url(v: str) -> str:
    parsed = urlparse(v)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("url must start with http or https")
    return v


HttpUrlStr = Annotated[str, AfterValidator(_check_http_url)]


def _schedule_field() -> Any:
    return Field(min_length=1, validation_alias=AliasChoices("schedule", "expression"))


def _minutes_between_field() -> Any:
    return Field(
        ge=0,
        validation_alias=AliasChoices("minutesBetween", "minutes_between"),
        serialization_alias="minutesBetween",
    )


class ServiceDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    service: str = Field(min_length=1, max_length=200)
    url: HttpUrlStr
    ok_status_code: int = Field(
        gt=0,
        le=599,
        validation_alias=AliasChoices("okStatusCode", "ok_status_code"),
        serialization_alias="okStatusCode",
    )
    schedule: str = _schedule_field()


class HealthchecksIoHeartbeat(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["healthchecks.io"]
    uuid: UUID
    schedule: str = _schedule_field()
    fail_ping: bool = Field(
        default=False,
        validation_alias=AliasChoices("failPing", "fail_ping"),
        serialization_alias="failPing",
    )
    base_url: HttpUrlStr = Field(
        default="https://hc-ping.com",
        validation_alias=AliasChoices("baseUrl", "base_url"),
        serialization_alias="baseUrl",
    )


class UrlHeartbeat(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["url"]
    url: HttpUrlStr
    schedule: str = _schedule_field()


Heartbeat = Annotated[Union[HealthchecksIoHeartbeat, UrlHeartbeat], Field(discriminator="type")]


class NtfyTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["ntfy"]
    topic: str = Field(min_length=1)
    schedule: str = _schedule_field()
    minutes_between: float = _minutes_between_field()
    server: HttpUrlStr = "https://ntfy.sh"
    title: str = "Service down"
    tags: str = "warning"

    @property
    def key(self) -> str:
        return self.topic


class WebhookTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["webhook"]
    url: HttpUrlStr
    schedule: str = _schedule_field()
    minutes_between: float = _minutes_between_field()

    @property
    def key(self) -> str:
        return self.url


NotifyTarget = Annotated[Union[NtfyTarget, WebhookTarget], Field(discriminator="type")]


def _infer_heartbeat_type(hb: Any) -> Any:
    if not isinstance(hb, dict):
        return hb
    hb = dict(hb)
    kind = hb.get("type")
    if kind is None:
        hb["type"] = "healthchecks.io" if "uuid" in hb else "url"
    elif kind == "healthcheaks.io":
        # опечатка из старых конфигов
        hb["type"] = "healthchecks.io"
    return hb


def _infer_notify_type(target: Any) -> Any:
    if not isinstance(target, dict) or "type" in target:
        return target
    target = dict(target)
    target["type"] = "webhook" if ("url" in target and "topic" not in target) else "ntfy"
    return target


class Config(BaseModel):
    model_config = ConfigDict(frozen=True)

    services: list[ServiceDefinition]
    nodes: list[str] = Field(default_factory=list)
    heartbeat: Optional[Heartbeat] = None
    notify: list[NotifyTarget] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _legacy_layout(cls, data: Any) -> Any:
        """Старые ключи: healthcheck -> heartbeat (url), ntfy -> notify[0]."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "healthcheck" in data:
            legacy = data.pop("healthcheck")
            if "heartbeat" not in data and isinstance(legacy, dict):
                data["heartbeat"] = {"type": "url", **legacy}
        if "ntfy" in data:
            legacy = data.pop("ntfy")
            if "notify" not in data and legacy is not None:
                data["notify"] = [legacy] if isinstance(legacy, dict) else legacy
        if data.get("heartbeat") is not None:
            data["heartbeat"] = _infer_heartbeat_type(data["heartbeat"])
        if isinstance(data.get("notify"), list):
            data["notify"] = [_infer_notify_type(t) for t in data["notify"]]
        return data

    @field_validator("services")
    @classmethod
    def _unique_names(cls, v: list[ServiceDefinition]) -> list[ServiceDefinition]:
        seen: set[str] = set()
        for s in v:
            if s.service in seen:
                raise ValueError(f"duplicate service name: {s.service}")
            seen.add(s.service)
        return v

    @field_validator("nodes")
    @classmethod
    def _node_urls(cls, v: list[str]) -> list[str]:
        return [_check_http_url(n).rstrip("/") for n in v]

    @property
    def service_names(self) -> list[str]:
        return [s.service for s in self.services]

    def public_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def _readable_error(e: ValidationError, source: str) -> str:
    lines = [f"Invalid config {source}:"]
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        lines.append(f"  {loc}: {err.get('msg')}")
    return "\n".join(lines)


def parse_config(data: Any, source: str = "<config>") -> Config:
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config {source}: top level must be a mapping")
    try:
        return Config.model_validate(data)
    except ValidationError as e:
        raise ConfigError(_readable_error(e, source)) from e


def load_config(path: str | Path) -> Config:
    """Прочитать файл конфигурации; формат определяется по расширению."""
    p = Path(path)
    try:
        raw = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {p}: {e}") from e
    try:
        if p.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(raw)
        else:
            data = json.loads(raw)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot parse config file {p}: {e}") from e
    return parse_config(data, source=str(p))
