"""HTTP record store adapter - REST client for a remote record service."""

import logging

import requests

from dayplan.config import Config, load_config
from dayplan.ports.record_store import StoreError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10


class HttpRecordStore:
    """
    REST record store adapter.

    Implements RecordStore protocol against a service exposing
    `/{collection}` and `/{collection}/{id}`. No business logic - just I/O.
    """

    def __init__(self, config: Config | None = None, session: requests.Session | None = None):
        self.config = config or load_config()
        if not self.config.store_url:
            raise StoreError("STORE_URL is not set in dayplan.conf")
        self.base_url = self.config.store_url.rstrip("/")
        self._session = session or requests.Session()
        if self.config.store_token:
            self._session.headers["Authorization"] = f"Bearer {self.config.store_token}"

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        """Make a request, translating transport and HTTP errors into StoreError."""
        url = f"{self.base_url}{path}"
        try:
            resp = self._session.request(method, url, timeout=REQUEST_TIMEOUT, **kwargs)
        except requests.RequestException as e:
            raise StoreError(f"{method} {url} failed: {e}") from e

        if resp.status_code == 404 and method == "GET":
            return resp
        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            raise StoreError(f"{method} {url} returned {resp.status_code}: {resp.text}") from e
        return resp

    def _json(self, resp: requests.Response, key: str | None = None):
        """Decode a response body, optionally picking one field."""
        try:
            data = resp.json()
            return data if key is None else data[key]
        except (ValueError, KeyError, TypeError) as e:
            raise StoreError(f"Unexpected response from {resp.url}: {e}") from e

    def get_all(self, collection: str) -> list[dict]:
        return self._json(self._request("GET", f"/{collection}"))

    def get(self, collection: str, key: int) -> dict | None:
        resp = self._request("GET", f"/{collection}/{key}")
        if resp.status_code == 404:
            return None
        return self._json(resp)

    def add(self, collection: str, record: dict) -> int:
        resp = self._request("POST", f"/{collection}", json=record)
        new_id = self._json(resp, "id")
        logger.debug(f"Added {collection}/{new_id}")
        return new_id

    def update(self, collection: str, record: dict) -> None:
        self._request("PUT", f"/{collection}/{record['id']}", json=record)

    def remove(self, collection: str, key: int) -> None:
        self._request("DELETE", f"/{collection}/{key}")
