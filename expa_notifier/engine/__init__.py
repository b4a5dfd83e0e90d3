"""Engine components for the fetch → dedup → classify → notify pipeline."""

from .classifier import Classification, RoutingRules, Suppressed, classify
from .notifier import Notifier, NotifyOutcome
from .records import Application, BaseRecord, Signup, StoredRecord
from .source import PageParams, PageResult, SourceAdapter
from .store import BaseRecordStore, InsertOutcome, MongoRecordStore, SQLiteRecordStore

__all__ = [
    "Application",
    "BaseRecord",
    "BaseRecordStore",
    "Classification",
    "InsertOutcome",
    "MongoRecordStore",
    "Notifier",
    "NotifyOutcome",
    "PageParams",
    "PageResult",
    "RoutingRules",
    "SQLiteRecordStore",
    "Signup",
    "SourceAdapter",
    "StoredRecord",
    "Suppressed",
    "classify",
]
