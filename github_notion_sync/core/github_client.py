"""GitHub REST API client for listing repository issues and pull requests."""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from github_notion_sync.core.errors import GitHubClientError
from github_notion_sync.core.logging_utils import sanitize_for_logging


logger = logging.getLogger(__name__)


class GitHubClient:
    """Async wrapper around the GitHub REST listing endpoints."""

    ITEM_KINDS = ("issues", "pulls")
    DEFAULT_PER_PAGE = 100

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        *,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client for one repository."""
        self.owner = owner
        self.repo = repo
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as e:
            raise GitHubClientError(f"GET {url} failed: {e}") from e

        if response.status_code >= 400:
            try:
                body = response.json()
                detail = body.get("message", "") if isinstance(body, dict) else body
            except ValueError:
                detail = response.text
            raise GitHubClientError(
                f"GET {url} returned HTTP {response.status_code}: "
                f"{sanitize_for_logging(detail)}",
                status_code=response.status_code,
            )
        return response

    async def iter_item_pages(self, kind: str) -> AsyncIterator[List[Dict[str, Any]]]:
        """
        Yield every page of issues or pull requests in the repository.

        Both open and closed items are listed. Pages are followed through the
        ``Link: rel="next"`` header until GitHub stops sending one.
        """
        if kind not in self.ITEM_KINDS:
            raise ValueError(f"Unsupported item kind: {kind}")

        url: Optional[str] = f"/repos/{self.owner}/{self.repo}/{kind}"
        params: Optional[Dict[str, Any]] = {"state": "all", "per_page": self.DEFAULT_PER_PAGE}
        page_number = 0

        while url:
            response = await self._get(url, params=params)
            try:
                items = response.json()
            except ValueError as e:
                raise GitHubClientError(f"Invalid JSON listing {kind}: {e}") from e
            if not isinstance(items, list):
                raise GitHubClientError(f"Unexpected response listing {kind}: expected a list")

            page_number += 1
            logger.debug(f"Fetched {kind} page {page_number} ({len(items)} items)")
            yield items

            # The next link already carries the query string
            url = response.links.get("next", {}).get("url")
            params = None
