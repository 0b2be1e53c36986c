"""Adapters - I/O implementations of ports."""

from .memory_store import MemoryRecordStore
from .json_store import JsonFileRecordStore
from .http_store import HttpRecordStore

__all__ = [
    "MemoryRecordStore",
    "JsonFileRecordStore",
    "HttpRecordStore",
]
