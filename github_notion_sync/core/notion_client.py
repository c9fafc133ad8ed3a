"""Notion REST API client for database queries and page writes."""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from github_notion_sync.core.errors import NotionClientError
from github_notion_sync.core.logging_utils import sanitize_for_logging


logger = logging.getLogger(__name__)


class NotionClient:
    """Async wrapper for the handful of Notion endpoints the sync needs."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = "https://api.notion.com/v1",
        notion_version: str = "2022-06-28",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {
            "Notion-Version": notion_version,
            "Content-Type": "application/json",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "NotionClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Send a request and return the decoded JSON object."""
        try:
            response = await self._client.request(method, path, json=body)
        except httpx.HTTPError as e:
            raise NotionClientError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            # Notion errors look like {"object": "error", "code": ..., "message": ...}
            try:
                error = response.json()
                if isinstance(error, dict):
                    detail = f"{error.get('code', 'error')}: {error.get('message', '')}"
                else:
                    detail = error
            except ValueError:
                detail = response.text
            raise NotionClientError(
                f"{method} {path} returned HTTP {response.status_code}: "
                f"{sanitize_for_logging(detail)}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise NotionClientError(f"{method} {path} returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise NotionClientError(f"{method} {path} returned an unexpected payload")
        return data

    async def query_database(
        self, database_id: str, start_cursor: Optional[str] = None
    ) -> Dict[str, Any]:
        """Query one page of results from a database."""
        body: Dict[str, Any] = {}
        if start_cursor is not None:
            body["start_cursor"] = start_cursor
        return await self._request("POST", f"/databases/{database_id}/query", body)

    async def iter_database_pages(self, database_id: str) -> AsyncIterator[List[Dict[str, Any]]]:
        """
        Yield the ``results`` of every query page until ``has_more`` is false.

        The first query is sent without a cursor; each follow-up uses the
        ``next_cursor`` returned by the previous response.
        """
        cursor: Optional[str] = None
        while True:
            response = await self.query_database(database_id, cursor)
            results = response.get("results")
            if not isinstance(results, list):
                raise NotionClientError(
                    f"Query of database {database_id} returned no results list"
                )
            logger.debug(f"Queried Notion database {database_id}: {len(results)} pages")
            yield results

            if not response.get("has_more"):
                return
            cursor = response.get("next_cursor")
            if not cursor:
                raise NotionClientError(
                    f"Query of database {database_id} reported more pages without a cursor"
                )

    async def create_page(self, database_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        """Create a page in a database."""
        return await self._request(
            "POST",
            "/pages",
            {"parent": {"database_id": database_id}, "properties": properties},
        )

    async def update_page(self, page_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        """Replace the given properties on an existing page; other properties are untouched."""
        return await self._request("PATCH", f"/pages/{page_id}", {"properties": properties})
