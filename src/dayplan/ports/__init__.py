"""Ports - interfaces/protocols for external dependencies."""

from .record_store import RecordStore, StoreError

__all__ = [
    "RecordStore",
    "StoreError",
]
