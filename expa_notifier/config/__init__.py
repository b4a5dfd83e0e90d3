"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    KIND_CHANNELS,
    ConfigMissing,
    NotifierConfig,
    PollConfig,
    RecordKind,
    RoutingConfig,
    RoutingKey,
    ScheduleConfig,
    ScheduleType,
    StoreConfig,
    UpstreamConfig,
)

__all__ = [
    "KIND_CHANNELS",
    "ConfigLocator",
    "ConfigMissing",
    "ConfigRepository",
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
