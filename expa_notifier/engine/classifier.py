"""Route records to chat channels.

Signups are relevant only when they selected the target programme. Applications
are routed through a decision table keyed by ``(function_code, at_home)``, where
``at_home`` tells whether the opportunity is hosted by the configured home
location. Anything the table does not list is suppressed: the record is still
stored, it just has no channel.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Union

from ..config import RoutingConfig, RoutingKey
from .records import Application, BaseRecord, Signup


@dataclass(frozen=True, slots=True)
class Suppressed:
    """Classification outcome for records that must not be notified."""

    reason: str


Classification = Union[RoutingKey, Suppressed]


@dataclass(frozen=True, slots=True)
class RoutingRules:
    target_programme: int
    home_location: str

    @classmethod
    def from_config(cls, config: RoutingConfig) -> "RoutingRules":
        return cls(target_programme=config.target_programme, home_location=config.home_location)


APPLICATION_ROUTES: Mapping[tuple[str, bool], RoutingKey] = {
    ("GTe", True): RoutingKey.INTERNAL_GT,
    ("GTe", False): RoutingKey.EXTERNAL_GT,
    ("GTa", True): RoutingKey.INTERNAL_GT,
    ("GTa", False): RoutingKey.EXTERNAL_GT,
    ("GV", True): RoutingKey.INTERNAL_GV,
    ("GV", False): RoutingKey.MAIN,
}


def _same_location(left: str | None, right: str) -> bool:
    if left is None:
        return False
    return left.strip().casefold() == right.strip().casefold()


def classify_signup(record: Signup, rules: RoutingRules) -> Classification:
    if rules.target_programme in set(record.selected_programmes):
        return RoutingKey.SIGNUP
    return Suppressed("programme_not_selected")


def classify_application(record: Application, rules: RoutingRules) -> Classification:
    code = record.function_code
    if not code:
        return Suppressed("missing_function_code")
    at_home = _same_location(record.host_location, rules.home_location)
    channel = APPLICATION_ROUTES.get((code, at_home))
    if channel is None:
        return Suppressed(f"unrouted_function:{code}")
    return channel


def classify(record: BaseRecord, rules: RoutingRules) -> Classification:
    """Map a record to its routing key, or ``Suppressed``."""

    if isinstance(record, Signup):
        return classify_signup(record, rules)
    if isinstance(record, Application):
        return classify_application(record, rules)
    return Suppressed(f"unknown_record_type:{type(record).__name__}")


__all__ = [
    "APPLICATION_ROUTES",
    "Classification",
    "RoutingRules",
    "Suppressed",
    "classify",
    "classify_application",
    "classify_signup",
]
