"""Health check API for monitoring the sync cycles."""

from datetime import datetime, timezone
from importlib.metadata import version, PackageNotFoundError
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from github_notion_sync.config import SYNC_KINDS, settings
from github_notion_sync.core.auth import verify_credentials
from github_notion_sync.core.sync_scheduler import FAILED, STOPPED, scheduler

try:
    __version__ = version("github-notion-sync")
except PackageNotFoundError:
    __version__ = "0.1.0"


router = APIRouter(prefix="/api/health", tags=["health"])


class ComponentHealth(BaseModel):
    """Health status of a single sync cycle."""
    name: str
    status: str  # "healthy", "degraded", "unhealthy"
    message: Optional[str] = None


class HealthResponse(BaseModel):
    """Complete health check response."""
    status: str
    timestamp: str
    version: str
    repository: str
    components: List[ComponentHealth]


class QuickHealthResponse(BaseModel):
    """Quick health check for load balancers."""
    status: str
    timestamp: str


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/quick", response_model=QuickHealthResponse)
async def quick_health():
    """Quick health check; does not inspect the sync cycles."""
    return QuickHealthResponse(status="healthy", timestamp=_now_iso())


def _cycle_health(kind: str) -> ComponentHealth:
    if not settings.is_enabled(kind):
        return ComponentHealth(name=kind, status="healthy", message="Disabled by configuration")

    cycle = scheduler.get_cycle(kind)
    if cycle is None:
        return ComponentHealth(name=kind, status="degraded", message="Not scheduled (no Notion database configured)")

    if cycle.phase == FAILED:
        return ComponentHealth(
            name=kind,
            status="unhealthy",
            message=f"Cycle halted after a failed pass: {cycle.halt_error}",
        )
    if cycle.phase == STOPPED:
        return ComponentHealth(name=kind, status="degraded", message="Cycle stopped")
    if cycle.last_error:
        return ComponentHealth(
            name=kind,
            status="degraded",
            message=f"Last manual pass failed: {cycle.last_error}",
        )
    return ComponentHealth(
        name=kind,
        status="healthy",
        message=f"{cycle.passes_completed} pass(es) completed, currently {cycle.phase}",
    )


@router.get("", response_model=HealthResponse)
async def detailed_health(_: str = Depends(verify_credentials)):
    """
    Detailed health check with one component per item kind.

    Overall status is the worst component status.
    """
    components = [_cycle_health(kind) for kind in SYNC_KINDS]

    overall_status = "healthy"
    if any(c.status == "unhealthy" for c in components):
        overall_status = "unhealthy"
    elif any(c.status == "degraded" for c in components):
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        timestamp=_now_iso(),
        version=__version__,
        repository=f"{settings.github_repo_owner}/{settings.github_repo_name}",
        components=components,
    )
