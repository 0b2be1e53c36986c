"""Record store interface."""

from typing import Protocol

TIME_BLOCKS = "time_blocks"
FIXED_BREAK_RULES = "fixed_break_rules"
TASKS = "tasks"


class StoreError(Exception):
    """Raised by store adapters when the backend call fails."""

    pass


class RecordStore(Protocol):
    """Interface for keyed record collections on any backend."""

    def get_all(self, collection: str) -> list[dict]:
        """Fetch every record in a collection."""
        ...

    def get(self, collection: str, key: int) -> dict | None:
        """Fetch one record. Returns None if not found."""
        ...

    def add(self, collection: str, record: dict) -> int:
        """Insert a record and return its generated id."""
        ...

    def update(self, collection: str, record: dict) -> None:
        """Replace the record whose id matches record['id']."""
        ...

    def remove(self, collection: str, key: int) -> None:
        """Delete a record by id."""
        ...
