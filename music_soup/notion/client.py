"""
Notion database client for music-soup.

NotionSink is the only RecordSink implementation: it queries, creates and
updates pages of one Notion database over the REST API with aiohttp.

Requests:
    - Authorization: Bearer <integration secret>
    - Notion-Version header from configuration
    - Throttled to 3 requests per second (Notion's documented average)
    - Retried on 429 (Retry-After) and 5xx; other 4xx fail immediately

Ordering:
    Database queries are sorted by created time, newest first, and
    paginated until exhausted (or until `limit` results are collected).

Usage:
    async with NotionSink(config.notion) as sink:
        records = await sink.query(SinkFilter("isrc", "contains", "GBUM71029604"))
"""

from typing import TYPE_CHECKING, Any, Protocol

import aiohttp
from asyncio_throttle import Throttler

from music_soup.core.exceptions import SinkError
from music_soup.core.http import DEFAULT_TIMEOUT, HttpRequestError, request_json
from music_soup.core.logger import get_logger
from music_soup.notion import schema
from music_soup.notion.models import Record, SinkFilter

if TYPE_CHECKING:
    from music_soup.core.config import NotionConfig


logger = get_logger(__name__)

BASE_URL = "https://api.notion.com/v1"
PAGE_SIZE = 100
REQUESTS_PER_SECOND = 3
NEWEST_FIRST = [{"timestamp": "created_time", "direction": "descending"}]


class RecordSink(Protocol):
    """
    Persistent store of Records.

    Every method raises SinkError on failure.
    """

    async def query(self, sink_filter: SinkFilter | None = None, limit: int | None = None) -> list[Record]:
        """Return matching Records, newest-created first."""
        ...

    async def create(self, fields: dict[str, Any]) -> Record:
        """Create a Record from canonical field values."""
        ...

    async def update(self, record_id: str, fields: dict[str, Any]) -> Record:
        """Overwrite the given fields of a Record; other fields are untouched."""
        ...

    async def set_removed(self, record_id: str) -> Record:
        """Soft-delete a Record."""
        ...

    async def get_schema(self) -> dict[str, Any]:
        """Return the store's property definitions, keyed by property name."""
        ...


class NotionSink:
    """
    RecordSink backed by a Notion database.

    The aiohttp session is opened on first use and closed by close() or
    by leaving the `async with` block.
    """

    def __init__(
        self,
        config: "NotionConfig",
        session: aiohttp.ClientSession | None = None,
        throttler: Throttler | None = None
    ) -> None:
        self.config = config
        self._session = session
        self._owns_session = session is None
        self._throttler = throttler or Throttler(rate_limit=REQUESTS_PER_SECOND, period=1.0)

    async def __aenter__(self) -> "NotionSink":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    # =========================================================================
    # RecordSink contract
    # =========================================================================

    async def query(
        self,
        sink_filter: SinkFilter | None = None,
        limit: int | None = None
    ) -> list[Record]:
        """
        Query the database.

        Args:
            sink_filter: Condition to apply, or None for every page.
            limit: Stop after this many Records. None reads every page.

        Returns:
            Records sorted newest-created first.

        Raises:
            SinkError: If any page of results cannot be fetched.
        """
        body: dict[str, Any] = {"sorts": NEWEST_FIRST, "page_size": PAGE_SIZE}
        if sink_filter is not None:
            try:
                body["filter"] = schema.build_filter(
                    sink_filter.field, sink_filter.operator, sink_filter.value
                )
            except ValueError as e:
                raise SinkError(
                    f"Invalid filter: {e}",
                    details={"filter": repr(sink_filter)}
                ) from e

        url = f"{BASE_URL}/databases/{self.config.database_id}/query"
        records: list[Record] = []

        while True:
            data = await self._request("POST", url, json=dict(body))
            records.extend(_to_record(page) for page in data.get("results") or [])

            if limit is not None and len(records) >= limit:
                return records[:limit]
            if not data.get("has_more") or not data.get("next_cursor"):
                return records
            body["start_cursor"] = data["next_cursor"]

    async def create(self, fields: dict[str, Any]) -> Record:
        """
        Create a page from canonical field values.

        Raises:
            SinkError: If Notion rejects the page.
        """
        payload = {
            "parent": {"database_id": self.config.database_id},
            "properties": schema.to_properties(fields),
        }
        page = await self._request("POST", f"{BASE_URL}/pages", json=payload)
        record = _to_record(page)
        logger.debug(f"Created Notion page {record.id} for '{fields.get('title')}'")
        return record

    async def update(self, record_id: str, fields: dict[str, Any]) -> Record:
        """
        Update the given fields of a page.

        Raises:
            SinkError: If Notion rejects the update.
        """
        payload = {"properties": schema.to_properties(fields)}
        page = await self._request(
            "PATCH", f"{BASE_URL}/pages/{record_id}", json=payload, page_id=record_id
        )
        logger.debug(f"Updated Notion page {record_id}")
        return _to_record(page)

    async def set_removed(self, record_id: str) -> Record:
        return await self.update(record_id, {"removed": True})

    # =========================================================================
    # Database inspection
    # =========================================================================

    async def get_schema(self) -> dict[str, Any]:
        """
        Return the database's "properties" object.

        Raises:
            SinkError: If the database cannot be retrieved (wrong id, or the
                       integration has not been shared with it).
        """
        data = await self._request("GET", f"{BASE_URL}/databases/{self.config.database_id}")
        return data.get("properties") or {}

    # =========================================================================
    # Internals
    # =========================================================================

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Notion-Version": self.config.api_version,
            "Content-Type": "application/json",
        }

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=DEFAULT_TIMEOUT)
        return self._session

    async def _request(
        self,
        method: str,
        url: str,
        json: dict[str, Any] | None = None,
        page_id: str | None = None
    ) -> dict[str, Any]:
        """Send one throttled request, translating failures into SinkError."""
        try:
            async with self._throttler:
                return await request_json(
                    self._get_session(),
                    method,
                    url,
                    headers=self._headers,
                    json=json,
                    auth_statuses=()
                )
        except HttpRequestError as e:
            details = dict(e.details)
            if page_id is not None:
                details["page_id"] = page_id
            raise SinkError(
                f"Notion API error: {e.message}",
                details=details,
                status_code=e.status_code
            ) from e


def _to_record(page: Any) -> Record:
    """Build a Record from a returned page, rejecting malformed ones as SinkError."""
    try:
        return Record.from_notion_page(page)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise SinkError(
            f"Malformed Notion page in response: {type(e).__name__}: {e}",
            details={"page_id": page.get("id") if isinstance(page, dict) else None}
        ) from e
