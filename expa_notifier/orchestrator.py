"""Poll orchestrator wiring together fetching, dedup storage, routing and notification."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime
from threading import Lock
from typing import Iterable, Mapping

import structlog

from .config import NotifierConfig, RecordKind, RoutingKey
from .engine import (
    BaseRecord,
    BaseRecordStore,
    InsertOutcome,
    Notifier,
    NotifyOutcome,
    PageParams,
    PageResult,
    RoutingRules,
    SourceAdapter,
    StoredRecord,
    Suppressed,
    classify,
)


@dataclass(slots=True)
class PollCursor:
    """Last confirmed ``created_at`` for a kind plus the ids confirmed at or below it.

    Only ids already confirmed by the store are skipped; anything unknown still
    goes through ``insert_if_absent``.
    """

    created_at: datetime | None = None
    confirmed_ids: frozenset[str] = frozenset()

    def admits(self, record: BaseRecord) -> bool:
        if self.created_at is None or record.id not in self.confirmed_ids:
            return True
        return record.created_at > self.created_at

    def advance(self, confirmed: Iterable[BaseRecord], failed: Iterable[BaseRecord]) -> None:
        confirmed = list(confirmed)
        failed_times = [record.created_at for record in failed]
        candidates = [record.created_at for record in confirmed]
        if failed_times:
            # Never move past a record the store did not confirm.
            floor = min(failed_times)
            candidates = [ts for ts in candidates if ts < floor]
        if candidates:
            highest = max(candidates)
            if self.created_at is None or highest > self.created_at:
                self.created_at = highest
        if self.created_at is None:
            return
        # Replaced every cycle, so the set stays as small as one page.
        self.confirmed_ids = frozenset(
            record.id for record in confirmed if record.created_at <= self.created_at
        )


@dataclass(slots=True)
class CycleSummary:
    kind: RecordKind
    fetched: int = 0
    prefiltered: int = 0
    inserted: int = 0
    duplicates: int = 0
    store_failed: int = 0
    suppressed: int = 0
    notified: int = 0
    notify_failed: int = 0
    notify_skipped: int = 0
    invalid: int = 0
    fetch_failed: bool = False
    channels: dict[str, int] = field(default_factory=dict)

    def as_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


class PollOrchestrator:
    """Run poll cycles per record kind, one at a time per kind."""

    def __init__(
        self,
        config: NotifierConfig,
        source: SourceAdapter,
        store: BaseRecordStore,
        notifier: Notifier,
        logger: structlog.BoundLogger | None = None,
        kind_loggers: Mapping[RecordKind, structlog.BoundLogger] | None = None,
    ) -> None:
        self.config = config
        self.source = source
        self.store = store
        self.notifier = notifier
        self.rules = RoutingRules.from_config(config.routing)
        self.logger = (logger or structlog.get_logger("expa_notifier")).bind(component="orchestrator")
        self._kind_loggers = dict(kind_loggers or {})
        self.cursors: dict[RecordKind, PollCursor] = {kind: PollCursor() for kind in RecordKind}
        self._locks: dict[RecordKind, Lock] = {kind: Lock() for kind in RecordKind}

    # ------------------------------------------------------------------
    def register_schedules(self, scheduler) -> None:
        for kind in self.config.enabled_kinds():
            scheduler.schedule_kind(kind, self.config.polls[kind].schedule, self.run_cycle)
        scheduler.start()

    def announce(self) -> dict[RoutingKey, NotifyOutcome]:
        """Post the startup test message to every channel in use."""

        return self.notifier.send_test_message(self.config.required_channels())

    def run_once(
        self, kinds: Iterable[RecordKind] | None = None, max_workers: int | None = None
    ) -> dict[RecordKind, CycleSummary]:
        """Run one cycle per kind; distinct kinds run side by side."""

        selected = list(kinds) if kinds is not None else self.config.enabled_kinds()
        if not selected:
            return {}
        workers = max_workers or self.config.thread_pool_workers
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="poller") as executor:
            futures = {kind: executor.submit(self.run_cycle, kind) for kind in selected}
            return {kind: future.result() for kind, future in futures.items()}

    def run_cycle(self, kind: RecordKind) -> CycleSummary:
        with self._locks[kind]:
            return self._run_cycle(kind)

    def history(self, kind: RecordKind, limit: int = 20) -> list[StoredRecord]:
        return self.store.recent(kind, limit=limit)

    # ------------------------------------------------------------------
    def _run_cycle(self, kind: RecordKind) -> CycleSummary:
        log = self._log(kind)
        poll = self.config.polls[kind]
        summary = CycleSummary(kind=kind)
        params = PageParams(
            page=poll.page, per_page=poll.page_size, filters=dict(poll.filters), q=poll.query
        )
        try:
            page = self.source.fetch_page(kind, params)
        except Exception as exc:  # noqa: BLE001
            log.error("fetch_failed", page=params.page, reason=str(exc))
            page = PageResult(failed=True)
        summary.fetch_failed = page.failed
        summary.invalid = page.invalid
        summary.fetched = len(page.records)

        cursor = self.cursors[kind]
        confirmed: list[BaseRecord] = []
        failed: list[BaseRecord] = []
        for record in page.records:
            if poll.watermark and not cursor.admits(record):
                summary.prefiltered += 1
                confirmed.append(record)
                continue
            outcome = self._process_record(kind, record, summary, log)
            if outcome is InsertOutcome.STORE_FAILED:
                failed.append(record)
            else:
                confirmed.append(record)
        if poll.watermark:
            cursor.advance(confirmed, failed)

        log.info("cycle_completed", **{k: v for k, v in summary.as_dict().items() if k != "kind"})
        return summary

    def _process_record(
        self,
        kind: RecordKind,
        record: BaseRecord,
        summary: CycleSummary,
        log: structlog.BoundLogger,
    ) -> InsertOutcome:
        try:
            outcome = self.store.insert_if_absent(kind, record)
        except Exception as exc:  # noqa: BLE001
            log.error("store_failed", record_id=record.id, error=str(exc))
            outcome = InsertOutcome.STORE_FAILED

        if outcome is InsertOutcome.DUPLICATE:
            summary.duplicates += 1
            return outcome
        if outcome is InsertOutcome.STORE_FAILED:
            summary.store_failed += 1
            log.warning("record_skipped", record_id=record.id, reason="store_failed")
            return outcome

        summary.inserted += 1
        log.info(
            "record_inserted",
            record_id=record.id,
            name=record.display_name,
            email=getattr(record, "email", None) or "no email",
        )

        routing = classify(record, self.rules)
        if isinstance(routing, Suppressed):
            summary.suppressed += 1
            log.info("record_suppressed", record_id=record.id, reason=routing.reason)
            return outcome

        try:
            result = self.notifier.notify(routing, record)
        except Exception as exc:  # noqa: BLE001
            log.error("notify_failed", record_id=record.id, channel=routing.value, error=str(exc))
            result = NotifyOutcome.FAILED

        if result is NotifyOutcome.SENT:
            summary.notified += 1
            summary.channels[routing.value] = summary.channels.get(routing.value, 0) + 1
        elif result is NotifyOutcome.SKIPPED:
            summary.notify_skipped += 1
        else:
            summary.notify_failed += 1
        return outcome

    def _log(self, kind: RecordKind) -> structlog.BoundLogger:
        if kind in self._kind_loggers:
            return self._kind_loggers[kind]
        return self.logger.bind(kind=kind.value)


__all__ = ["CycleSummary", "PollCursor", "PollOrchestrator"]
