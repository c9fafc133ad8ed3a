"""Exceptions raised by the GitHub and Notion clients."""

from typing import Optional


class SyncClientError(Exception):
    """Base class for failures talking to GitHub or Notion."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GitHubClientError(SyncClientError):
    """Raised when a GitHub API request fails."""


class NotionClientError(SyncClientError):
    """Raised when a Notion API request fails or returns a malformed page."""
