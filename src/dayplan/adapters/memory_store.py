"""In-memory record store adapter."""

import copy

from dayplan.ports.record_store import StoreError


class MemoryRecordStore:
    """
    Dict-backed record storage.

    Implements RecordStore protocol. Records are copied on the way in and
    out so callers never share state with the store.
    """

    def __init__(self):
        self._collections: dict[str, dict[int, dict]] = {}
        self._next_id = 1

    def _collection(self, name: str) -> dict[int, dict]:
        return self._collections.setdefault(name, {})

    def get_all(self, collection: str) -> list[dict]:
        return [copy.deepcopy(r) for r in self._collection(collection).values()]

    def get(self, collection: str, key: int) -> dict | None:
        record = self._collection(collection).get(key)
        return copy.deepcopy(record) if record is not None else None

    def add(self, collection: str, record: dict) -> int:
        new_id = self._next_id
        self._next_id += 1
        self._collection(collection)[new_id] = {**copy.deepcopy(record), "id": new_id}
        return new_id

    def update(self, collection: str, record: dict) -> None:
        key = record["id"]
        records = self._collection(collection)
        if key not in records:
            raise StoreError(f"No record {collection}/{key} to update")
        records[key] = copy.deepcopy(record)

    def remove(self, collection: str, key: int) -> None:
        self._collection(collection).pop(key, None)
