"""MongoDB record store with a unique index on ``id`` per collection."""

from __future__ import annotations

from datetime import datetime
from threading import Lock
from typing import Any

import structlog
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from ...config import RecordKind
from ..records import BaseRecord, StoredRecord
from .base import BaseRecordStore, InsertOutcome


class MongoRecordStore(BaseRecordStore):
    """Write records into the ``signups`` / ``applications`` collections."""

    def __init__(
        self,
        uri: str,
        database: str,
        client: Any | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.client = client if client is not None else MongoClient(uri, tz_aware=True)
        self.database = self.client[database]
        self.logger = logger or structlog.get_logger("expa_notifier.store")
        self._indexed: set[RecordKind] = set()
        self._index_lock = Lock()

    def _collection(self, kind: RecordKind) -> Collection:
        collection = self.database[kind.collection]
        if kind not in self._indexed:
            with self._index_lock:
                if kind not in self._indexed:
                    collection.create_index([("id", ASCENDING)], unique=True, name="uniq_id")
                    self._indexed.add(kind)
        return collection

    def insert_if_absent(self, kind: RecordKind, record: BaseRecord) -> InsertOutcome:
        document = record.to_document()
        document["created_at"] = record.created_at
        document["fetched_at"] = self._now()
        try:
            self._collection(kind).insert_one(document)
        except DuplicateKeyError:
            return InsertOutcome.DUPLICATE
        except PyMongoError as exc:
            self.logger.error("store_failed", kind=kind.value, record_id=record.id, error=str(exc))
            return InsertOutcome.STORE_FAILED
        return InsertOutcome.INSERTED

    def get(self, kind: RecordKind, record_id: str) -> StoredRecord | None:
        document = self._collection(kind).find_one({"id": record_id}, {"_id": False})
        return self._to_stored(kind, document) if document else None

    def recent(self, kind: RecordKind, limit: int = 20) -> list[StoredRecord]:
        cursor = (
            self._collection(kind)
            .find({}, {"_id": False})
            .sort("fetched_at", DESCENDING)
            .limit(limit)
        )
        return [self._to_stored(kind, document) for document in cursor]

    def count(self, kind: RecordKind) -> int:
        return int(self._collection(kind).count_documents({}))

    def close(self) -> None:
        self.client.close()

    @staticmethod
    def _to_stored(kind: RecordKind, document: dict[str, Any]) -> StoredRecord:
        payload = dict(document)
        fetched_at = payload.pop("fetched_at")
        created_at = payload.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
        return StoredRecord(
            kind=kind,
            record_id=str(payload["id"]),
            created_at=created_at,
            fetched_at=fetched_at,
            payload=payload,
        )


__all__ = ["MongoRecordStore"]
