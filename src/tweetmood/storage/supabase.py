from __future__ import annotations

from typing import Any, Optional, Sequence

import httpx

from tweetmood.core.errors import StorageError
from tweetmood.core.logger import get_logger
from tweetmood.core.retry import with_retry
from tweetmood.storage.base import Filters, Row, Storage

log = get_logger("supabase")


def _eq_params(filters: Filters) -> dict[str, str]:
    return {col: f"eq.{value}" for col, value in (filters or {}).items()}


def _total_from_content_range(header: Optional[str]) -> int:
    # "0-24/3573" or "*/0"
    if not header or "/" not in header:
        raise StorageError(f"Missing or invalid Content-Range header: {header!r}")
    total = header.rsplit("/", 1)[1]
    if total == "*":
        raise StorageError("Server did not return an exact count")
    return int(total)


class SupabaseStorage(Storage):
    """Supabase tables through the PostgREST API.

    PostgREST refuses unfiltered deletes, so deleting a whole table filters
    on the table's key column being non-null.

    Usage:
        store = SupabaseStorage(url="https://xyz.supabase.co", key="...")
        rows = store.query("processed_tweets", limit=100, order_by="tweet_date", descending=True)
        store.close()
    """

    def __init__(
        self,
        url: str,
        key: str,
        key_columns: Optional[dict[str, str]] = None,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        if not url or not key:
            raise ValueError("Supabase URL and key are required")

        self.base_url = f"{url.rstrip('/')}/rest/v1"
        self.key_columns = key_columns or {}
        headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }
        self.client = client or httpx.Client(timeout=timeout, headers=headers)
        if client is not None:
            self.client.headers.update(headers)

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()
        log.debug("Supabase client closed")

    def _url(self, table: str) -> str:
        return f"{self.base_url}/{table}"

    @with_retry(max_attempts=3, min_wait=1.0, max_wait=10.0)
    def _read(self, method: str, table: str, params: dict[str, Any], headers: dict[str, str]) -> httpx.Response:
        response = self.client.request(method, self._url(table), params=params, headers=headers)
        response.raise_for_status()
        return response

    def _write(self, method: str, table: str, **kwargs: Any) -> httpx.Response:
        response = self.client.request(method, self._url(table), **kwargs)
        response.raise_for_status()
        return response

    def query(
        self,
        table: str,
        filters: Filters = None,
        limit: Optional[int] = None,
        offset: int = 0,
        order_by: Optional[str] = None,
        descending: bool = False,
        columns: Optional[Sequence[str]] = None,
    ) -> list[Row]:
        params: dict[str, Any] = {"select": ",".join(columns) if columns else "*"}
        params.update(_eq_params(filters))
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = limit
        if offset:
            params["offset"] = offset

        try:
            return list(self._read("GET", table, params, {}).json())
        except (httpx.HTTPError, ValueError) as e:
            raise StorageError(f"Query on {table} failed: {e}") from e

    def count(self, table: str, filters: Filters = None) -> int:
        params = {"select": "*"}
        params.update(_eq_params(filters))
        try:
            response = self._read("HEAD", table, params, {"Prefer": "count=exact"})
        except httpx.HTTPError as e:
            raise StorageError(f"Count on {table} failed: {e}") from e
        return _total_from_content_range(response.headers.get("content-range"))

    def insert_many(self, table: str, rows: Sequence[Row]) -> int:
        if not rows:
            return 0
        try:
            self._write("POST", table, json=list(rows), headers={"Prefer": "return=minimal"})
        except httpx.HTTPError as e:
            raise StorageError(f"Insert into {table} failed: {e}") from e
        log.debug(f"Inserted {len(rows)} rows into {table}")
        return len(rows)

    def delete_many(self, table: str, filters: Filters = None) -> int:
        params = _eq_params(filters)
        if not params:
            key = self.key_columns.get(table, "id")
            params = {key: "not.is.null"}
        try:
            response = self._write(
                "DELETE",
                table,
                params=params,
                headers={"Prefer": "return=minimal,count=exact"},
            )
        except httpx.HTTPError as e:
            raise StorageError(f"Delete from {table} failed: {e}") from e
        deleted = _total_from_content_range(response.headers.get("content-range"))
        if deleted > 0:
            log.info(f"Deleted {deleted} rows from {table}")
        return deleted
