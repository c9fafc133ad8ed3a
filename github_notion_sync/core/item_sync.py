"""Core GitHub → Notion item sync engine."""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from github_notion_sync.config import ConfigurationError, Settings
from github_notion_sync.core.errors import GitHubClientError
from github_notion_sync.core.github_client import GitHubClient
from github_notion_sync.core.logging_utils import sanitize_for_logging
from github_notion_sync.core.notion_client import NotionClient


logger = logging.getLogger(__name__)


# -------------------------------------------------------------------------
# Notion schema
# -------------------------------------------------------------------------

STATE_FIELD = "State"
TITLE_FIELD = "Name"
LABELS_FIELD = "Labels"

KEY_FIELDS = {
    "issues": "Issue Number",
    "pulls": "Request Number",
}


@dataclass(frozen=True)
class TableSchema:
    """Where one kind of GitHub item lives in Notion and how its fields are named."""

    kind: str
    database_id: str
    key_field: str
    state_field: str = STATE_FIELD
    title_field: str = TITLE_FIELD
    labels_field: str = LABELS_FIELD


def table_schema_for(kind: str, settings: Settings) -> TableSchema:
    """Build the table schema for a sync kind from settings."""
    if kind not in KEY_FIELDS:
        raise ConfigurationError(f"Unknown sync kind: {kind}")
    database_id = settings.database_id_for(kind)
    if not database_id:
        raise ConfigurationError(f"No Notion database configured for {kind}")
    return TableSchema(kind=kind, database_id=database_id, key_field=KEY_FIELDS[kind])


# -------------------------------------------------------------------------
# GitHub items
# -------------------------------------------------------------------------

@dataclass(frozen=True)
class RemoteItem:
    """Snapshot of a GitHub issue or pull request taken during one pass."""

    source_id: Any
    key: int
    title: str
    state: str
    labels: Tuple[Dict[str, str], ...] = ()


def normalize_item(raw: Dict[str, Any]) -> RemoteItem:
    """Reduce a GitHub API item to the fields mirrored into Notion."""
    try:
        key = int(raw["number"])
    except (KeyError, TypeError, ValueError) as e:
        raise GitHubClientError(f"Item without a usable number: {e}") from e

    # Missing and empty label lists are treated the same
    labels = tuple({"name": label["name"]} for label in raw.get("labels") or [])
    return RemoteItem(
        source_id=raw.get("id"),
        key=key,
        title=raw.get("title") or "",
        state=raw.get("state"),
        labels=labels,
    )


def item_to_properties(item: RemoteItem, schema: TableSchema) -> Dict[str, Any]:
    """
    Map a GitHub item onto Notion page properties.

    The state is sent as a select option named exactly like GitHub's state;
    Notion rejects the write if the database has no such option.
    """
    return {
        schema.state_field: {"name": item.state},
        schema.key_field: item.key,
        schema.title_field: [{"text": {"content": item.title}}],
        schema.labels_field: [dict(label) for label in item.labels],
    }


async def fetch_remote_items(github: GitHubClient, kind: str) -> Dict[int, RemoteItem]:
    """Fetch every item of one kind, keyed by number in listing order."""
    items: Dict[int, RemoteItem] = {}
    async for page in github.iter_item_pages(kind):
        for raw in page:
            item = normalize_item(raw)
            items[item.key] = item
    return items


async def build_destination_index(notion: NotionClient, schema: TableSchema) -> Dict[int, str]:
    """Map each stored item number to the id of its Notion page."""
    index: Dict[int, str] = {}
    async for results in notion.iter_database_pages(schema.database_id):
        for page in results:
            key = _page_key(page, schema.key_field)
            if key is None:
                logger.debug(
                    f"Skipping Notion page {page.get('id')} without a whole {schema.key_field!r} value"
                )
                continue
            index[key] = page["id"]
    return index


def _page_key(page: Dict[str, Any], key_field: str) -> Optional[int]:
    prop = (page.get("properties") or {}).get(key_field) or {}
    number = prop.get("number")
    # A fractional number can never equal an item number
    if isinstance(number, bool) or not isinstance(number, (int, float)):
        return None
    if isinstance(number, float) and not number.is_integer():
        return None
    return int(number)


# -------------------------------------------------------------------------
# Engine
# -------------------------------------------------------------------------

class ItemSyncEngine:
    """Engine for mirroring one kind of GitHub item into one Notion database."""

    def __init__(
        self,
        github: GitHubClient,
        notion: NotionClient,
        schema: TableSchema,
        on_phase: Optional[Callable[[str], None]] = None,
    ):
        self.github = github
        self.notion = notion
        self.schema = schema
        self._on_phase = on_phase or (lambda phase: None)

    async def sync(self) -> Dict[str, Any]:
        """
        Perform a full pass: index Notion, fetch GitHub, create or update.

        Writes are issued one at a time. Any failure propagates and ends the
        pass; pages already written stay written.

        Returns:
            Dict with sync statistics.
        """
        kind = self.schema.kind
        logger.info(f"Syncing GitHub {kind} with Notion database {self.schema.database_id}")

        stats = {
            "items_processed": 0,
            "items_created": 0,
            "items_updated": 0,
        }

        self._on_phase("fetching")
        index = await build_destination_index(self.notion, self.schema)
        logger.info(f"Found {len(index)} {kind} already in Notion")

        items = await fetch_remote_items(self.github, kind)
        logger.info(f"Found {len(items)} {kind} on GitHub")

        self._on_phase("reconciling")
        for key, item in items.items():
            await self._sync_item(key, item, index, stats)

        logger.info(
            f"{kind.capitalize()} sync completed: {stats['items_created']} created, "
            f"{stats['items_updated']} updated"
        )
        return stats

    async def _sync_item(
        self,
        key: int,
        item: RemoteItem,
        index: Dict[int, str],
        stats: Dict[str, Any],
    ) -> None:
        properties = item_to_properties(item, self.schema)
        page_id = index.get(key)

        if page_id is None:
            await self.notion.create_page(self.schema.database_id, properties)
            stats["items_created"] += 1
            logger.debug(f"Created Notion page for {self.schema.kind} #{key}: {sanitize_for_logging(item.title)}")
        else:
            await self.notion.update_page(page_id, properties)
            stats["items_updated"] += 1
            logger.debug(f"Updated Notion page {page_id} for {self.schema.kind} #{key}")

        stats["items_processed"] += 1


async def run_sync_pass(
    kind: str,
    on_phase: Optional[Callable[[str], None]] = None,
    *,
    app_settings: Settings,
) -> Dict[str, Any]:
    """Open clients from settings and run one sync pass for a kind."""
    schema = table_schema_for(kind, app_settings)
    github = GitHubClient(
        app_settings.github_key,
        app_settings.github_repo_owner,
        app_settings.github_repo_name,
        base_url=app_settings.github_api_url,
        timeout=app_settings.api_timeout_seconds,
    )
    notion = NotionClient(
        app_settings.notion_key,
        base_url=app_settings.notion_api_url,
        notion_version=app_settings.notion_version,
        timeout=app_settings.api_timeout_seconds,
    )
    async with github, notion:
        engine = ItemSyncEngine(github, notion, schema, on_phase=on_phase)
        return await engine.sync()
