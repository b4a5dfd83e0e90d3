"""Upstream record models for people (signups) and opportunity applications."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import RecordKind


class _Payload(BaseModel):
    model_config = ConfigDict(extra="allow")


class NamedRef(_Payload):
    id: str | None = None
    name: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return None if value is None else str(value)


class ContactDetail(_Payload):
    phone: str | None = None
    country_code: str | None = None


class PersonProfile(_Payload):
    selected_programmes: list[int] = Field(default_factory=list)

    @field_validator("selected_programmes", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class Programme(_Payload):
    short_name_display: str | None = None


class Opportunity(_Payload):
    id: str | None = None
    title: str | None = None
    programme: Programme | None = None
    host_lc: NamedRef | None = None
    home_mc: NamedRef | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return None if value is None else str(value)


class Applicant(_Payload):
    id: str | None = None
    full_name: str | None = None
    email: str | None = None
    contact_detail: ContactDetail | None = None
    home_lc: NamedRef | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return None if value is None else str(value)


class BaseRecord(_Payload):
    """Fields shared by every upstream record; ``id`` is the dedup key."""

    kind: ClassVar[RecordKind]

    id: str
    created_at: datetime

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if value is None or str(value).strip() == "":
            raise ValueError("record id is required")
        return str(value)

    @field_validator("created_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def display_name(self) -> str:
        return self.id

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=False)


class Signup(BaseRecord):
    kind: ClassVar[RecordKind] = RecordKind.SIGNUP

    full_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    contact_detail: ContactDetail | None = None
    home_lc: NamedRef | None = None
    person_profile: PersonProfile | None = None

    @property
    def display_name(self) -> str:
        if self.full_name:
            return self.full_name
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or self.id

    @property
    def phone(self) -> str | None:
        return self.contact_detail.phone if self.contact_detail else None

    @property
    def selected_programmes(self) -> list[int]:
        return self.person_profile.selected_programmes if self.person_profile else []


class Application(BaseRecord):
    kind: ClassVar[RecordKind] = RecordKind.APPLICATION

    status: str | None = None
    person: Applicant | None = None
    opportunity: Opportunity | None = None

    @property
    def display_name(self) -> str:
        if self.person and self.person.full_name:
            return self.person.full_name
        return self.id

    @property
    def email(self) -> str | None:
        return self.person.email if self.person else None

    @property
    def phone(self) -> str | None:
        if self.person and self.person.contact_detail:
            return self.person.contact_detail.phone
        return None

    @property
    def function_code(self) -> str | None:
        if self.opportunity and self.opportunity.programme:
            code = self.opportunity.programme.short_name_display
            return code.strip() if code else None
        return None

    @property
    def host_location(self) -> str | None:
        if self.opportunity and self.opportunity.host_lc:
            return self.opportunity.host_lc.name
        return None

    @property
    def opportunity_title(self) -> str | None:
        return self.opportunity.title if self.opportunity else None


RECORD_MODELS: dict[RecordKind, type[BaseRecord]] = {
    RecordKind.SIGNUP: Signup,
    RecordKind.APPLICATION: Application,
}


@dataclass(slots=True)
class StoredRecord:
    """A record as persisted by the deduplicating store."""

    kind: RecordKind
    record_id: str
    created_at: datetime | None
    fetched_at: datetime
    payload: dict[str, Any] = field(default_factory=dict, repr=False)


__all__ = [
    "Application",
    "BaseRecord",
    "RECORD_MODELS",
    "Signup",
    "StoredRecord",
]
