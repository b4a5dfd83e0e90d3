from __future__ import annotations

from datetime import datetime, timezone

from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from expa_notifier.config import RecordKind
from expa_notifier.engine import InsertOutcome, MongoRecordStore


class FakeCursor:
    def __init__(self, documents: list[dict]) -> None:
        self.documents = documents

    def sort(self, key: str, direction: int) -> "FakeCursor":
        self.documents.sort(key=lambda doc: doc[key], reverse=direction < 0)
        return self

    def limit(self, count: int) -> "FakeCursor":
        self.documents = self.documents[:count]
        return self

    def __iter__(self):
        return iter(self.documents)


class FakeCollection:
    def __init__(self) -> None:
        self.documents: list[dict] = []
        self.indexes: list[dict] = []
        self.down = False

    def create_index(self, keys, unique=False, name=None):  # noqa: ANN001
        if self.down:
            raise ServerSelectionTimeoutError("no servers")
        self.indexes.append({"keys": keys, "unique": unique, "name": name})
        return name

    def insert_one(self, document: dict) -> None:
        if self.down:
            raise ServerSelectionTimeoutError("no servers")
        if any(doc["id"] == document["id"] for doc in self.documents):
            raise DuplicateKeyError("E11000 duplicate key error")
        self.documents.append(dict(document))

    def find_one(self, query: dict, projection: dict | None = None):
        for doc in self.documents:
            if doc["id"] == query["id"]:
                return dict(doc)
        return None

    def find(self, query: dict, projection: dict | None = None) -> FakeCursor:
        return FakeCursor([dict(doc) for doc in self.documents])

    def count_documents(self, query: dict) -> int:
        return len(self.documents)


class FakeDatabase:
    def __init__(self) -> None:
        self.collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection())


class FakeClient:
    def __init__(self) -> None:
        self.db = FakeDatabase()
        self.closed = False

    def __getitem__(self, name: str) -> FakeDatabase:
        return self.db

    @property
    def collections(self) -> dict[str, FakeCollection]:
        return self.db.collections

    def close(self) -> None:
        self.closed = True


def test_mongo_store_creates_unique_index_and_dedups(make_signup) -> None:
    client = FakeClient()
    store = MongoRecordStore("mongodb://unused", "expa", client=client)

    assert store.insert_if_absent(RecordKind.SIGNUP, make_signup("A")) is InsertOutcome.INSERTED
    assert store.insert_if_absent(RecordKind.SIGNUP, make_signup("A")) is InsertOutcome.DUPLICATE

    collection = client.collections["signups"]
    assert collection.indexes == [{"keys": [("id", 1)], "unique": True, "name": "uniq_id"}]
    assert len(collection.documents) == 1
    assert isinstance(collection.documents[0]["fetched_at"], datetime)


def test_mongo_store_uses_collection_per_kind(make_signup, make_application) -> None:
    client = FakeClient()
    store = MongoRecordStore("mongodb://unused", "expa", client=client)

    store.insert_if_absent(RecordKind.SIGNUP, make_signup("1"))
    store.insert_if_absent(RecordKind.APPLICATION, make_application("1"))

    assert set(client.collections) == {"signups", "applications"}
    assert store.count(RecordKind.APPLICATION) == 1


def test_mongo_store_failure_is_reported(make_signup) -> None:
    client = FakeClient()
    store = MongoRecordStore("mongodb://unused", "expa", client=client)
    store.insert_if_absent(RecordKind.SIGNUP, make_signup("A"))
    client.collections["signups"].down = True

    assert store.insert_if_absent(RecordKind.SIGNUP, make_signup("B")) is InsertOutcome.STORE_FAILED


def test_mongo_store_index_failure_is_retried(make_signup) -> None:
    client = FakeClient()
    store = MongoRecordStore("mongodb://unused", "expa", client=client)
    first = client.collections.setdefault("signups", FakeCollection())
    first.down = True
    assert store.insert_if_absent(RecordKind.SIGNUP, make_signup("A")) is InsertOutcome.STORE_FAILED
    first.down = False
    assert store.insert_if_absent(RecordKind.SIGNUP, make_signup("A")) is InsertOutcome.INSERTED


def test_mongo_store_reads_back_records(make_signup) -> None:
    client = FakeClient()
    store = MongoRecordStore("mongodb://unused", "expa", client=client)
    store.insert_if_absent(RecordKind.SIGNUP, make_signup("A", created_at="2024-05-20T04:30:00Z"))

    stored = store.get(RecordKind.SIGNUP, "A")
    assert stored is not None
    assert stored.record_id == "A"
    assert stored.created_at == datetime(2024, 5, 20, 4, 30, tzinfo=timezone.utc)
    assert [row.record_id for row in store.recent(RecordKind.SIGNUP)] == ["A"]
    assert store.get(RecordKind.SIGNUP, "missing") is None

    store.close()
    assert client.closed
