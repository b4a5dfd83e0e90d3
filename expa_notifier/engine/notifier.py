"""Chat webhook notifier posting ``{"text": ...}`` messages."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Mapping
from zoneinfo import ZoneInfo

import httpx
import structlog

from ..config import RoutingKey
from .records import Application, BaseRecord, Signup

TEST_MESSAGE = "Test message from EXPA signup notifier."


class NotifyOutcome(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


class Notifier:
    """Format records into chat messages and post them best-effort."""

    def __init__(
        self,
        webhooks: Mapping[RoutingKey, str],
        time_zone: str = "Asia/Colombo",
        enabled: bool = True,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.webhooks = dict(webhooks)
        self.zone = ZoneInfo(time_zone)
        self.enabled = enabled
        self.logger = logger or structlog.get_logger("expa_notifier.notifier")
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def notify(self, channel: RoutingKey, record: BaseRecord) -> NotifyOutcome:
        if not self.enabled:
            self.logger.info("notify_skipped", channel=channel.value, record_id=record.id)
            return NotifyOutcome.SKIPPED
        url = self.webhooks.get(channel)
        if not url:
            self.logger.error(
                "notify_failed",
                channel=channel.value,
                record_id=record.id,
                error="no endpoint bound to channel",
            )
            return NotifyOutcome.FAILED
        return self._post(url, self.format_message(record), channel=channel.value, record_id=record.id)

    def send_test_message(self, channels: list[RoutingKey] | None = None) -> dict[RoutingKey, NotifyOutcome]:
        """Post the fixed test message to each requested channel that has an endpoint."""

        targets = channels if channels is not None else list(self.webhooks)
        results: dict[RoutingKey, NotifyOutcome] = {}
        for channel in targets:
            url = self.webhooks.get(channel)
            if not url:
                self.logger.error("notify_failed", channel=channel.value, error="no endpoint bound to channel")
                results[channel] = NotifyOutcome.FAILED
                continue
            results[channel] = self._post(url, TEST_MESSAGE, channel=channel.value, record_id=None)
        return results

    def format_message(self, record: BaseRecord) -> str:
        if isinstance(record, Signup):
            lines = [
                "New EXPA Signup",
                f"Name: {record.display_name}",
                f"Phone: {record.phone or 'N/A'}",
                f"Email: {record.email or 'N/A'}",
                f"Signed up: {self.format_time(record.created_at)}",
            ]
        elif isinstance(record, Application):
            code = record.function_code
            lines = [
                f"New EXPA {code} Application" if code else "New EXPA Application",
                f"Applicant: {record.display_name}",
                f"Phone: {record.phone or 'N/A'}",
                f"Email: {record.email or 'N/A'}",
                f"Opportunity: {record.opportunity_title or 'N/A'}",
                f"Host LC: {record.host_location or 'N/A'}",
                f"Applied: {self.format_time(record.created_at)}",
            ]
        else:
            lines = [f"New EXPA record {record.id}", f"Created: {self.format_time(record.created_at)}"]
        return "\n".join(lines)

    def format_time(self, value: datetime) -> str:
        local = value.astimezone(self.zone)
        return local.strftime("%Y-%m-%d %H:%M") + f" ({self.zone.key})"

    def _post(self, url: str, text: str, *, channel: str, record_id: str | None) -> NotifyOutcome:
        try:
            response = self._client.post(
                url,
                json={"text": text},
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            self.logger.error("notify_failed", channel=channel, record_id=record_id, error=str(exc))
            return NotifyOutcome.FAILED
        self.logger.info(
            "notification_sent", channel=channel, record_id=record_id, status=response.status_code
        )
        return NotifyOutcome.SENT


__all__ = ["NotifyOutcome", "Notifier", "TEST_MESSAGE"]
