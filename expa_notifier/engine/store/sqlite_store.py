"""Record store backed by SQLite tables with a primary key on ``id``."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from threading import Lock

import structlog

from ...config import RecordKind
from ...infra.storage import SQLiteManager
from ..records import BaseRecord, StoredRecord
from .base import BaseRecordStore, InsertOutcome


class SQLiteRecordStore(BaseRecordStore):
    """Persist records as JSON payloads; ``INSERT OR IGNORE`` reports duplicates."""

    def __init__(
        self,
        manager: SQLiteManager,
        db_path: Path,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.manager = manager
        self.db_path = db_path
        self.logger = logger or structlog.get_logger("expa_notifier.store")
        self._lock = Lock()
        self.manager.connect(db_path)

    def _connection(self) -> sqlite3.Connection:
        return self.manager.connect(self.db_path)

    def insert_if_absent(self, kind: RecordKind, record: BaseRecord) -> InsertOutcome:
        fetched_at = self._now()
        try:
            with self._lock:
                conn = self._connection()
                cur = conn.execute(
                    f"INSERT OR IGNORE INTO {kind.collection}(id, created_at, fetched_at, payload) "
                    "VALUES (?, ?, ?, ?)",
                    (
                        record.id,
                        record.created_at.isoformat(),
                        fetched_at.isoformat(),
                        json.dumps(record.to_document(), ensure_ascii=False),
                    ),
                )
                conn.commit()
                inserted = cur.rowcount == 1
        except sqlite3.Error as exc:
            self.logger.error("store_failed", kind=kind.value, record_id=record.id, error=str(exc))
            return InsertOutcome.STORE_FAILED
        return InsertOutcome.INSERTED if inserted else InsertOutcome.DUPLICATE

    def get(self, kind: RecordKind, record_id: str) -> StoredRecord | None:
        with self._lock:
            row = self._connection().execute(
                f"SELECT id, created_at, fetched_at, payload FROM {kind.collection} WHERE id = ?",
                (record_id,),
            ).fetchone()
        return self._to_stored(kind, row) if row is not None else None

    def recent(self, kind: RecordKind, limit: int = 20) -> list[StoredRecord]:
        with self._lock:
            rows = self._connection().execute(
                f"SELECT id, created_at, fetched_at, payload FROM {kind.collection} "
                "ORDER BY fetched_at DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [self._to_stored(kind, row) for row in rows]

    def count(self, kind: RecordKind) -> int:
        with self._lock:
            row = self._connection().execute(f"SELECT count(*) FROM {kind.collection}").fetchone()
        return int(row[0])

    def close(self) -> None:
        with self._lock:
            self.manager.close(self.db_path)

    @staticmethod
    def _to_stored(kind: RecordKind, row: sqlite3.Row) -> StoredRecord:
        created = row["created_at"]
        return StoredRecord(
            kind=kind,
            record_id=row["id"],
            created_at=datetime.fromisoformat(created) if created else None,
            fetched_at=datetime.fromisoformat(row["fetched_at"]),
            payload=json.loads(row["payload"]),
        )


__all__ = ["SQLiteRecordStore"]
