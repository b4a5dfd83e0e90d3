"""GraphQL source adapter fetching one page of people or applications from EXPA."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from ..config import RecordKind, UpstreamConfig
from .records import RECORD_MODELS, BaseRecord

PEOPLE_QUERY = """
query PeopleIndexQuery($page: Int, $perPage: Int, $filters: PeopleFilter, $q: String) {
  allPeople(page: $page, per_page: $perPage, filters: $filters, q: $q) {
    data {
      id
      full_name
      first_name
      last_name
      email
      created_at
      updated_at
      status
      home_lc { id name }
      home_mc { id name }
      contact_detail { phone country_code }
      person_profile { selected_programmes }
      campaign { id campaign_tag }
      referral_type
    }
    paging { total_items current_page total_pages }
  }
}
"""

APPLICATIONS_QUERY = """
query ApplicationsIndexQuery($page: Int, $perPage: Int, $filters: ApplicationFilter, $q: String) {
  allOpportunityApplication(page: $page, per_page: $perPage, filters: $filters, q: $q) {
    data {
      id
      created_at
      updated_at
      status
      person {
        id
        full_name
        email
        contact_detail { phone country_code }
        home_lc { id name }
      }
      opportunity {
        id
        title
        programme { short_name_display }
        host_lc { id name }
        home_mc { id name }
      }
    }
    paging { total_items current_page total_pages }
  }
}
"""


@dataclass(frozen=True, slots=True)
class GraphQLOperation:
    name: str
    root_field: str
    query: str


OPERATIONS: dict[RecordKind, GraphQLOperation] = {
    RecordKind.SIGNUP: GraphQLOperation("PeopleIndexQuery", "allPeople", PEOPLE_QUERY),
    RecordKind.APPLICATION: GraphQLOperation(
        "ApplicationsIndexQuery", "allOpportunityApplication", APPLICATIONS_QUERY
    ),
}


@dataclass(slots=True)
class PageParams:
    """Paging and filter inputs passed through to the upstream query."""

    page: int = 1
    per_page: int = 10
    filters: dict[str, Any] = field(default_factory=dict)
    q: str = ""

    def as_variables(self) -> dict[str, Any]:
        return {
            "page": self.page,
            "perPage": self.per_page,
            "filters": dict(self.filters),
            "q": self.q,
        }


class FetchFailed(Exception):
    """Internal signal for a page that could not be fetched or parsed."""


@dataclass(slots=True)
class PageResult:
    """Records parsed from one page; ``failed`` marks a page that could not be read at all."""

    records: list[BaseRecord] = field(default_factory=list)
    failed: bool = False
    invalid: int = 0


class SourceAdapter:
    """Fetch a single page of records; degrade to an empty page on any failure."""

    def __init__(
        self,
        upstream: UpstreamConfig,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.upstream = upstream
        self.logger = logger or structlog.get_logger("expa_notifier.source")
        self._client = client or httpx.Client(timeout=upstream.timeout)

    def close(self) -> None:
        self._client.close()

    def fetch_page(self, kind: RecordKind, params: PageParams | None = None) -> PageResult:
        params = params or PageParams()
        try:
            rows = self._fetch(kind, params)
        except FetchFailed as exc:
            self.logger.error("fetch_failed", kind=kind.value, page=params.page, reason=str(exc))
            return PageResult(failed=True)
        result = self._parse_rows(kind, rows)
        self.logger.info(
            "page_fetched",
            kind=kind.value,
            page=params.page,
            count=len(result.records),
            invalid=result.invalid,
        )
        return result

    def _fetch(self, kind: RecordKind, params: PageParams) -> list[Any]:
        operation = OPERATIONS[kind]
        body = {
            "operationName": operation.name,
            "variables": params.as_variables(),
            "query": operation.query,
        }
        try:
            response = self._client.post(
                self.upstream.url,
                json=body,
                headers={"authorization": self.upstream.token},
            )
        except httpx.HTTPError as exc:
            raise FetchFailed(f"request error: {exc}") from exc

        self.logger.info("upstream_status", kind=kind.value, status=response.status_code)
        if not response.is_success:
            raise FetchFailed(f"unexpected status {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchFailed(f"invalid JSON body: {response.text[:200]!r}") from exc

        return self._extract_rows(payload, operation)

    def _parse_rows(self, kind: RecordKind, rows: list[Any]) -> PageResult:
        # A malformed row is dropped on its own; the rest of the page still counts.
        model = RECORD_MODELS[kind]
        result = PageResult()
        for row in rows:
            try:
                result.records.append(model.model_validate(row))
            except ValidationError as exc:
                result.invalid += 1
                self.logger.warning(
                    "record_invalid",
                    kind=kind.value,
                    record_id=row.get("id") if isinstance(row, dict) else None,
                    errors=exc.error_count(),
                )
        return result

    @staticmethod
    def _extract_rows(payload: Any, operation: GraphQLOperation) -> list[Any]:
        if not isinstance(payload, dict):
            raise FetchFailed("response is not a JSON object")
        data = payload.get("data")
        if not isinstance(data, dict):
            errors = payload.get("errors") or []
            messages = [e.get("message", "") for e in errors if isinstance(e, dict)]
            raise FetchFailed("graphql errors: " + "; ".join(messages) if messages else "missing data")
        root = data.get(operation.root_field)
        if root is None:
            return []
        if not isinstance(root, dict):
            raise FetchFailed(f"{operation.root_field} is not an object")
        rows = root.get("data") or []
        if not isinstance(rows, list):
            raise FetchFailed(f"{operation.root_field}.data is not a list")
        return rows


__all__ = ["FetchFailed", "OPERATIONS", "PageParams", "PageResult", "SourceAdapter"]
