"""JSON file record store adapter."""

import json
import logging
from pathlib import Path

from dayplan.ports.record_store import StoreError

logger = logging.getLogger(__name__)


class JsonFileRecordStore:
    """
    File-based record storage.

    Implements RecordStore protocol. Each collection gets a JSON file
    holding its records and the next id to hand out.
    """

    def __init__(self, data_dir: Path | str):
        self.data_dir = Path(data_dir).expanduser()
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _path_for(self, collection: str) -> Path:
        """Get the file path for a collection."""
        return self.data_dir / f"{collection}.json"

    def _load(self, collection: str) -> dict:
        path = self._path_for(collection)
        if not path.exists():
            return {"next_id": 1, "records": {}}
        try:
            return json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Failed to read {path}: {e}") from e

    def _save(self, collection: str, data: dict) -> None:
        path = self._path_for(collection)
        tmp = path.with_suffix(".json.tmp")
        try:
            tmp.write_text(json.dumps(data, indent=2))
            tmp.replace(path)
        except OSError as e:
            raise StoreError(f"Failed to write {path}: {e}") from e

    def get_all(self, collection: str) -> list[dict]:
        return list(self._load(collection)["records"].values())

    def get(self, collection: str, key: int) -> dict | None:
        return self._load(collection)["records"].get(str(key))

    def add(self, collection: str, record: dict) -> int:
        data = self._load(collection)
        new_id = data["next_id"]
        data["records"][str(new_id)] = {**record, "id": new_id}
        data["next_id"] = new_id + 1
        self._save(collection, data)
        logger.debug(f"Added {collection}/{new_id}")
        return new_id

    def update(self, collection: str, record: dict) -> None:
        data = self._load(collection)
        key = str(record["id"])
        if key not in data["records"]:
            raise StoreError(f"No record {collection}/{key} to update")
        data["records"][key] = record
        self._save(collection, data)

    def remove(self, collection: str, key: int) -> None:
        data = self._load(collection)
        if data["records"].pop(str(key), None) is not None:
            self._save(collection, data)
            logger.debug(f"Removed {collection}/{key}")
