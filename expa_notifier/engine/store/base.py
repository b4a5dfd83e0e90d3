"""Deduplicating record store SPI."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum

from ...config import RecordKind
from ..records import BaseRecord, StoredRecord


class InsertOutcome(str, Enum):
    """Result of an insert-if-absent call."""

    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    STORE_FAILED = "store_failed"


class BaseRecordStore(ABC):
    """Uniform store contract: one partition per kind, unique on ``id``, never overwrites."""

    @abstractmethod
    def insert_if_absent(self, kind: RecordKind, record: BaseRecord) -> InsertOutcome:
        """Persist ``record`` unless its id already exists in the kind's partition."""

    @abstractmethod
    def get(self, kind: RecordKind, record_id: str) -> StoredRecord | None:
        """Return the stored copy of a record, if any."""

    @abstractmethod
    def recent(self, kind: RecordKind, limit: int = 20) -> list[StoredRecord]:
        """Return the most recently persisted records."""

    @abstractmethod
    def count(self, kind: RecordKind) -> int:
        """Return the number of stored records for a kind."""

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)


__all__ = ["BaseRecordStore", "InsertOutcome"]
