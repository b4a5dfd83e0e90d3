"""Pytest configuration providing shared fixtures and record builders."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Iterable

import httpx
import pytest

from expa_notifier.config import (
    ConfigLocator,
    ConfigRepository,
    NotifierConfig,
    RecordKind,
    RoutingKey,
)
from expa_notifier.engine import Application, Notifier, Signup, SourceAdapter, SQLiteRecordStore
from expa_notifier.infra import SQLiteManager

WEBHOOKS = {key: f"https://chat.example.com/{key.value}" for key in RoutingKey}


@pytest.fixture
def sample_config() -> NotifierConfig:
    return NotifierConfig.model_validate(
        {
            "upstream": {"url": "https://expa.example.com/graphql", "token": "secret"},
            "routing": {"target_programme": 7, "home_location": "COLOMBO SOUTH"},
            "webhooks": {key.value: url for key, url in WEBHOOKS.items()},
        }
    )


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterable[ConfigRepository]:
    monkeypatch.setenv("EXPA_NOTIFIER_HOME", str(tmp_path))
    monkeypatch.delenv("EXPA_ACCESS_TOKEN", raising=False)
    locator = ConfigLocator(project_root=tmp_path)
    yield ConfigRepository(locator)


def signup_payload(record_id: str = "A", programmes: list[int] | None = None, **overrides: Any) -> dict:
    payload: dict[str, Any] = {
        "id": record_id,
        "full_name": f"Person {record_id}",
        "email": f"{record_id.lower()}@example.com",
        "created_at": "2024-05-20T04:30:00Z",
        "contact_detail": {"phone": "+94770000000", "country_code": "+94"},
        "person_profile": {"selected_programmes": [7] if programmes is None else programmes},
    }
    payload.update(overrides)
    return payload


def application_payload(
    record_id: str = "APP-1",
    function: str | None = "GV",
    host: str | None = "JAFFNA",
    **overrides: Any,
) -> dict:
    payload: dict[str, Any] = {
        "id": record_id,
        "created_at": "2024-05-20T04:30:00Z",
        "status": "open",
        "person": {
            "id": "99",
            "full_name": f"Applicant {record_id}",
            "email": "applicant@example.com",
            "contact_detail": {"phone": "+94771111111"},
        },
        "opportunity": {
            "id": "555",
            "title": "Teach English",
            "programme": {"short_name_display": function} if function is not None else None,
            "host_lc": {"name": host} if host is not None else None,
        },
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_signup() -> Callable[..., Signup]:
    def _builder(record_id: str = "A", programmes: list[int] | None = None, **overrides: Any) -> Signup:
        return Signup.model_validate(signup_payload(record_id, programmes, **overrides))

    return _builder


@pytest.fixture
def make_application() -> Callable[..., Application]:
    def _builder(record_id: str = "APP-1", function: str | None = "GV", host: str | None = "JAFFNA", **overrides: Any) -> Application:
        return Application.model_validate(application_payload(record_id, function, host, **overrides))

    return _builder


def graphql_page(kind: RecordKind, rows: list[dict]) -> dict:
    root = "allPeople" if kind is RecordKind.SIGNUP else "allOpportunityApplication"
    return {
        "data": {
            root: {
                "data": rows,
                "paging": {"total_items": len(rows), "current_page": 1, "total_pages": 1},
            }
        }
    }


class UpstreamStub:
    """Serve configurable GraphQL pages through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.pages: dict[str, list[dict]] = {"PeopleIndexQuery": [], "ApplicationsIndexQuery": []}
        self.requests: list[dict] = []
        self.status_code = 200
        self.raise_error: Exception | None = None

    def set_page(self, kind: RecordKind, rows: list[dict]) -> None:
        name = "PeopleIndexQuery" if kind is RecordKind.SIGNUP else "ApplicationsIndexQuery"
        self.pages[name] = rows

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append({"body": body, "headers": dict(request.headers)})
        if self.raise_error is not None:
            raise self.raise_error
        if self.status_code != 200:
            return httpx.Response(self.status_code, text="upstream down")
        kind = RecordKind.SIGNUP if body["operationName"] == "PeopleIndexQuery" else RecordKind.APPLICATION
        return httpx.Response(200, json=graphql_page(kind, self.pages[body["operationName"]]))

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


class WebhookRecorder:
    """Record chat webhook posts; optionally fail every call."""

    def __init__(self) -> None:
        self.posts: list[dict] = []
        self.fail = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            raise httpx.ConnectError("webhook unreachable", request=request)
        self.posts.append({"url": str(request.url), "json": json.loads(request.content)})
        return httpx.Response(200, json={"name": "spaces/x/messages/y"})

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    def channels(self) -> list[str]:
        return [post["url"].rsplit("/", 1)[-1] for post in self.posts]


@pytest.fixture
def upstream() -> UpstreamStub:
    return UpstreamStub()


@pytest.fixture
def webhooks() -> WebhookRecorder:
    return WebhookRecorder()


@pytest.fixture
def sqlite_store(tmp_path: Path) -> Iterable[SQLiteRecordStore]:
    manager = SQLiteManager()
    store = SQLiteRecordStore(manager, tmp_path / "history" / "records.db")
    yield store
    manager.close_all()


@pytest.fixture
def source_adapter(sample_config: NotifierConfig, upstream: UpstreamStub) -> SourceAdapter:
    return SourceAdapter(sample_config.upstream, client=upstream.client())


@pytest.fixture
def notifier(sample_config: NotifierConfig, webhooks: WebhookRecorder) -> Notifier:
    return Notifier(sample_config.webhooks, time_zone="Asia/Colombo", client=webhooks.client())


@pytest.fixture
def signup_row() -> Callable[..., dict]:
    return signup_payload


@pytest.fixture
def application_row() -> Callable[..., dict]:
    return application_payload
