import asyncio

import pytest

from httpx import ASGITransport, AsyncClient

from github_notion_sync.config import settings
from github_notion_sync.core.auth import verify_credentials
from github_notion_sync.core.item_sync import KEY_FIELDS, TableSchema


class FakeGitHub:
    """Stands in for GitHubClient; serves pre-built listing pages."""

    def __init__(self, pages=None):
        self.pages = pages or []
        self.requested_kinds = []

    async def iter_item_pages(self, kind):
        self.requested_kinds.append(kind)
        for page in self.pages:
            yield page


class FakeNotion:
    """Stands in for NotionClient; records every write in call order."""

    def __init__(self, query_pages=None):
        self.query_pages = query_pages or []
        self.queried = []
        self.calls = []

    async def iter_database_pages(self, database_id):
        self.queried.append(database_id)
        for results in self.query_pages:
            yield results

    async def create_page(self, database_id, properties):
        self.calls.append(("create", database_id, properties))
        return {"id": f"new-{len(self.calls)}"}

    async def update_page(self, page_id, properties):
        self.calls.append(("update", page_id, properties))
        return {"id": page_id}


def github_item(number, title="Item", state="open", labels=(), item_id=None):
    return {
        "id": item_id if item_id is not None else number * 1000,
        "number": number,
        "title": title,
        "state": state,
        "labels": [{"id": i, "name": name, "color": "ededed"} for i, name in enumerate(labels)],
    }


def notion_page(page_id, key, key_field="Issue Number"):
    return {
        "object": "page",
        "id": page_id,
        "properties": {key_field: {"id": "abc", "type": "number", "number": key}},
    }


@pytest.fixture
def issue_schema():
    return TableSchema(kind="issues", database_id="issue-db", key_field=KEY_FIELDS["issues"])


@pytest.fixture
def pull_schema():
    return TableSchema(kind="pulls", database_id="pull-db", key_field=KEY_FIELDS["pulls"])


@pytest.fixture
def parked_sleep():
    """Sleep replacement that records delays and never wakes up."""
    delays = []
    never = asyncio.Event()

    async def _sleep(seconds):
        delays.append(seconds)
        await never.wait()

    _sleep.delays = delays
    return _sleep


@pytest.fixture
def configured_settings(monkeypatch):
    monkeypatch.setattr(settings, "github_key", "ghp_testtoken1234")
    monkeypatch.setattr(settings, "notion_key", "secret_notiontoken")
    monkeypatch.setattr(settings, "github_repo_owner", "octo")
    monkeypatch.setattr(settings, "github_repo_name", "widgets")
    monkeypatch.setattr(settings, "issue_database_id", "issue-db")
    monkeypatch.setattr(settings, "pull_database_id", "pull-db")
    monkeypatch.setattr(settings, "sync_issues_enabled", True)
    monkeypatch.setattr(settings, "sync_pulls_enabled", True)
    monkeypatch.setattr(settings, "auth_enabled", False)
    return settings


@pytest.fixture
def pass_results():
    """Per-kind queue of results (dicts or exceptions) for the fake pass runner."""
    return {"issues": [], "pulls": []}


@pytest.fixture
def test_scheduler(configured_settings, pass_results, parked_sleep):
    from github_notion_sync.core.sync_scheduler import SyncScheduler

    async def runner(kind, on_phase):
        on_phase("reconciling")
        queue = pass_results[kind]
        result = queue.pop(0) if queue else {"items_processed": 0, "items_created": 0, "items_updated": 0}
        if isinstance(result, Exception):
            raise result
        return result

    s = SyncScheduler(app_settings=configured_settings, runner=runner, sleep=parked_sleep)
    s._build_cycles()
    return s


@pytest.fixture
async def app(test_scheduler, monkeypatch):
    """
    FastAPI app with:
    - the global scheduler swapped for one driven by a fake pass runner
    - auth dependency overridden to bypass HTTP basic
    """
    from github_notion_sync.main import app as fastapi_app
    from github_notion_sync.api import health as health_mod
    from github_notion_sync.api import sync as sync_mod

    monkeypatch.setattr(health_mod, "scheduler", test_scheduler)
    monkeypatch.setattr(sync_mod, "scheduler", test_scheduler)

    fastapi_app.dependency_overrides[verify_credentials] = lambda: "test-user"
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.clear()
        for cycle in test_scheduler.cycles.values():
            await cycle.stop()


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
