"""API endpoints for inspecting and triggering sync passes."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from github_notion_sync.config import SYNC_KINDS
from github_notion_sync.core.auth import verify_credentials
from github_notion_sync.core.sync_scheduler import SyncCycle, SyncInProgressError, scheduler

logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api/sync", tags=["sync"])

# Keep references so manual passes are not garbage collected mid-flight
manual_sync_tasks: Set[asyncio.Task] = set()


async def wait_for_manual_syncs(timeout: float = 300):
    """
    Wait for in-flight manual passes on shutdown.

    Passes still running after ``timeout`` seconds are cancelled and awaited,
    so no pass outlives the application with its HTTP clients open.
    """
    if not manual_sync_tasks:
        return
    tasks_snapshot = list(manual_sync_tasks)

    logger.info(f"Waiting for {len(tasks_snapshot)} manual sync task(s) to complete (timeout: {timeout}s)...")
    try:
        await asyncio.wait_for(
            asyncio.gather(*tasks_snapshot, return_exceptions=True),
            timeout=timeout,
        )
        logger.info("All manual sync tasks completed")
    except asyncio.TimeoutError:
        remaining = [t for t in tasks_snapshot if not t.done()]
        logger.warning(
            f"Timeout waiting for manual sync tasks after {timeout}s; "
            f"cancelling {len(remaining)} task(s)"
        )
        for task in remaining:
            task.cancel()
        await asyncio.gather(*remaining, return_exceptions=True)


class CycleStatusResponse(BaseModel):
    kind: str
    phase: str
    running: bool
    halted: bool
    interval_seconds: float
    passes_completed: int
    last_started_at: Optional[datetime] = None
    last_completed_at: Optional[datetime] = None
    last_stats: Optional[Dict[str, Any]] = None
    last_error: Optional[str] = None
    halt_error: Optional[str] = None


def _get_cycle_or_404(kind: str) -> SyncCycle:
    if kind not in SYNC_KINDS:
        raise HTTPException(status_code=404, detail=f"Unknown sync kind: {kind}")
    cycle = scheduler.get_cycle(kind)
    if cycle is None:
        raise HTTPException(
            status_code=404,
            detail=f"{kind} sync is disabled or has no Notion database configured",
        )
    return cycle


@router.get("", response_model=List[CycleStatusResponse])
async def list_cycles(_: str = Depends(verify_credentials)):
    """Status of every scheduled cycle."""
    return [CycleStatusResponse(**cycle.status()) for cycle in scheduler.cycles.values()]


@router.get("/{kind}", response_model=CycleStatusResponse)
async def get_cycle(kind: str, _: str = Depends(verify_credentials)):
    return CycleStatusResponse(**_get_cycle_or_404(kind).status())


async def _run_manual_pass(cycle: SyncCycle) -> None:
    try:
        stats = await cycle.run_once()
        logger.info(f"Manual {cycle.kind} sync completed: {stats}")
    except SyncInProgressError as e:
        logger.info(f"Manual {cycle.kind} sync skipped: {e}")
    except Exception as e:
        logger.error(f"Manual {cycle.kind} sync failed: {e}", exc_info=True)


@router.post("/{kind}/trigger", status_code=202)
async def trigger_sync(kind: str, _: str = Depends(verify_credentials)):
    """Run one pass for a kind now, outside the periodic schedule."""
    cycle = _get_cycle_or_404(kind)

    if cycle.in_progress:
        raise HTTPException(
            status_code=409,
            detail=f"{kind} sync already in progress ({cycle.phase})",
        )

    task = asyncio.create_task(_run_manual_pass(cycle))
    manual_sync_tasks.add(task)
    task.add_done_callback(manual_sync_tasks.discard)

    return {"message": f"{kind} sync started", "kind": kind}
