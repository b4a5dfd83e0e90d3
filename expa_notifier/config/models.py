"""Pydantic models used across the notifier configuration flow."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator


class RecordKind(str, Enum):
    """Upstream record kinds polled independently."""

    SIGNUP = "signup"
    APPLICATION = "application"

    @property
    def collection(self) -> str:
        return f"{self.value}s"


class RoutingKey(str, Enum):
    """Closed set of chat channels a record can be routed to."""

    SIGNUP = "signup"
    INTERNAL_GT = "internal_gt"
    EXTERNAL_GT = "external_gt"
    MAIN = "main"
    INTERNAL_GV = "internal_gv"


# Channels a kind can resolve to; used to decide which webhooks are required.
KIND_CHANNELS: dict[RecordKind, tuple[RoutingKey, ...]] = {
    RecordKind.SIGNUP: (RoutingKey.SIGNUP,),
    RecordKind.APPLICATION: (
        RoutingKey.INTERNAL_GT,
        RoutingKey.EXTERNAL_GT,
        RoutingKey.MAIN,
        RoutingKey.INTERNAL_GV,
    ),
}


class ConfigMissing(RuntimeError):
    """Raised at startup when a required setting is absent."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__("Missing required configuration: " + ", ".join(self.missing))


class ScheduleType(str, Enum):
    """Scheduler modes for a poll job."""

    CRON = "cron"
    INTERVAL = "interval"
    ONCE = "once"


class ScheduleConfig(BaseModel):
    """Configuration describing when a kind should be polled."""

    type: ScheduleType = Field(default=ScheduleType.INTERVAL)
    value: Any = Field(
        default=60,
        description="Cron expression, interval seconds or ISO datetime, depending on type.",
    )

    @model_validator(mode="after")
    def _validate_value(self) -> "ScheduleConfig":
        if self.type is ScheduleType.CRON and not isinstance(self.value, str):
            raise ValueError("Cron schedule requires string expression")
        if self.type is ScheduleType.INTERVAL:
            if isinstance(self.value, bool) or not isinstance(self.value, (int, float, dict)):
                raise ValueError("Interval schedule requires seconds (int/float) or kwargs dict")
            if isinstance(self.value, (int, float)) and self.value <= 0:
                raise ValueError("Interval seconds must be > 0")
        if (
            self.type is ScheduleType.ONCE
            and self.value is not None
            and not isinstance(self.value, str)
        ):
            raise ValueError("Once schedule expects ISO datetime string or null")
        return self


class PollConfig(BaseModel):
    """Per-kind polling parameters passed through to the upstream query."""

    enabled: bool = True
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    page: int = 1
    page_size: int = 10
    filters: dict[str, Any] = Field(default_factory=dict)
    query: str = ""
    # Skip ids the store already confirmed at or below the last created_at seen.
    watermark: bool = False

    @model_validator(mode="after")
    def _validate_paging(self) -> "PollConfig":
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")
        return self


class UpstreamConfig(BaseModel):
    """GraphQL endpoint and credentials."""

    url: str = "https://gis-api.aiesec.org/graphql"
    token: str = ""
    timeout: float = 15.0


class StoreConfig(BaseModel):
    """Deduplicating store backend settings."""

    backend: Literal["mongodb", "sqlite"] = "sqlite"
    uri: str = "mongodb://localhost:27017"
    database: str = "expa_notifier"
    sqlite_path: Path = Field(default=Path("data/history/records.db"))

    @field_validator("sqlite_path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    def resolved_sqlite_path(self, base_dir: Path) -> Path:
        if not self.sqlite_path.is_absolute():
            return (base_dir / self.sqlite_path).resolve()
        return self.sqlite_path


class RoutingConfig(BaseModel):
    """Inputs of the classifier and message formatting."""

    target_programme: int = 7
    home_location: str = "COLOMBO SOUTH"
    time_zone: str = "Asia/Colombo"

    @field_validator("home_location")
    @classmethod
    def _strip_location(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("home_location cannot be empty")
        return value

    @field_validator("time_zone")
    @classmethod
    def _validate_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown time zone: {value}") from exc
        return value


def _default_polls() -> dict[RecordKind, PollConfig]:
    return {
        RecordKind.SIGNUP: PollConfig(schedule=ScheduleConfig(value=60)),
        RecordKind.APPLICATION: PollConfig(schedule=ScheduleConfig(value=30)),
    }


class NotifierConfig(BaseModel):
    """Top level process configuration."""

    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    polls: dict[RecordKind, PollConfig] = Field(default_factory=_default_polls)
    webhooks: dict[RoutingKey, str] = Field(default_factory=dict)
    notifications_enabled: bool = True
    announce_on_start: bool = True
    notify_timeout: float = 10.0
    thread_pool_workers: int = 2

    @field_validator("webhooks", mode="before")
    @classmethod
    def _drop_blank_webhooks(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {key: url for key, url in value.items() if url and str(url).strip()}
        return value

    @model_validator(mode="after")
    def _fill_missing_kinds(self) -> "NotifierConfig":
        for kind, default in _default_polls().items():
            self.polls.setdefault(kind, default)
        return self

    def enabled_kinds(self) -> list[RecordKind]:
        return [kind for kind in RecordKind if self.polls[kind].enabled]

    def required_channels(self) -> list[RoutingKey]:
        channels: list[RoutingKey] = []
        for kind in self.enabled_kinds():
            channels.extend(KIND_CHANNELS[kind])
        return channels

    def missing_settings(self) -> list[str]:
        """Return the names of required settings that are absent."""

        missing: list[str] = []
        if not self.upstream.url:
            missing.append("upstream.url")
        if not self.upstream.token:
            missing.append("upstream.token")
        for channel in self.required_channels():
            if channel not in self.webhooks:
                missing.append(f"webhooks.{channel.value}")
        return missing


__all__ = [
    "ConfigMissing",
    "KIND_CHANNELS",
    "NotifierConfig",
    "PollConfig",
    "RecordKind",
    "RoutingConfig",
    "RoutingKey",
    "ScheduleConfig",
    "ScheduleType",
    "StoreConfig",
    "UpstreamConfig",
]
