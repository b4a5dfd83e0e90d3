"""Record store SPI and implementations."""

from .base import BaseRecordStore, InsertOutcome
from .mongo_store import MongoRecordStore
from .sqlite_store import SQLiteRecordStore

__all__ = ["BaseRecordStore", "InsertOutcome", "MongoRecordStore", "SQLiteRecordStore"]
