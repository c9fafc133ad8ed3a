"""Background scheduler that keeps issues and pull requests mirrored."""

import asyncio
import functools
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from github_notion_sync.config import SYNC_KINDS, Settings, settings
from github_notion_sync.core.item_sync import run_sync_pass
from github_notion_sync.core.logging_utils import redact_token, sanitize_for_logging


logger = logging.getLogger(__name__)


PassRunner = Callable[[str, Callable[[str], None]], Awaitable[Dict[str, Any]]]
Sleeper = Callable[[float], Awaitable[Any]]

IDLE = "idle"
FETCHING = "fetching"
RECONCILING = "reconciling"
WAITING = "waiting"
FAILED = "failed"
STOPPED = "stopped"


class SyncInProgressError(Exception):
    """Raised when a pass is requested while one is already running for that kind."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncCycle:
    """
    Periodic sync of one item kind.

    Each tick runs a full pass and then sleeps ``interval_seconds`` measured
    from the end of that pass, so passes of the same kind never overlap.
    A pass that raises halts the cycle; it is not rescheduled until the
    process restarts.
    """

    def __init__(
        self,
        kind: str,
        runner: PassRunner,
        interval_seconds: float,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.kind = kind
        self.interval_seconds = interval_seconds
        self._runner = runner
        self._sleep = sleep
        self.task: Optional[asyncio.Task] = None

        self.phase = IDLE
        self.halted = False
        self.stopped = False
        self.passes_completed = 0
        self.last_started_at: Optional[datetime] = None
        self.last_completed_at: Optional[datetime] = None
        self.last_stats: Optional[Dict[str, Any]] = None
        self.last_error: Optional[str] = None
        # Error of the periodic pass that halted the cycle; manual passes never clear it
        self.halt_error: Optional[str] = None

    @property
    def in_progress(self) -> bool:
        return self.phase in (FETCHING, RECONCILING)

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    def _set_phase(self, phase: str) -> None:
        self.phase = phase

    def _resting_phase(self) -> str:
        if self.stopped:
            return STOPPED
        if self.running:
            return WAITING
        return FAILED if self.halted else IDLE

    def start(self) -> None:
        if self.running:
            logger.warning(f"{self.kind} sync cycle is already running")
            return
        self.halted = False
        self.halt_error = None
        self.stopped = False
        self.task = asyncio.create_task(self._run(), name=f"sync-{self.kind}")

    async def stop(self) -> None:
        """Cancel the periodic task; the cycle stays stopped until started again."""
        self.stopped = True
        if self.task is not None:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None
        self.phase = STOPPED

    async def run_once(self) -> Dict[str, Any]:
        """Run a single pass now and return its statistics."""
        if self.in_progress:
            raise SyncInProgressError(f"{self.kind} sync already in progress ({self.phase})")

        self.last_started_at = _utcnow()
        self.phase = FETCHING
        try:
            stats = await self._runner(self.kind, self._set_phase)
        except asyncio.CancelledError:
            self.phase = self._resting_phase()
            raise
        except Exception as e:
            self.last_error = sanitize_for_logging(str(e) or type(e).__name__)
            self.phase = self._resting_phase()
            raise

        self.passes_completed += 1
        self.last_completed_at = _utcnow()
        self.last_stats = stats
        self.last_error = None
        self.phase = self._resting_phase()
        return stats

    async def _run(self) -> None:
        """Tick loop; ends only on cancellation or a failed pass."""
        while True:
            try:
                await self.run_once()
            except SyncInProgressError:
                logger.info(f"Skipping scheduled {self.kind} sync: a manual pass is running")
            except Exception as e:
                logger.error(
                    f"{self.kind} sync failed, halting this cycle until restart: {e}",
                    exc_info=True,
                )
                self.halted = True
                self.halt_error = self.last_error
                self.phase = FAILED
                return

            await self._sleep(self.interval_seconds)

    def status(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "phase": self.phase,
            "running": self.running,
            "halted": self.halted,
            "interval_seconds": self.interval_seconds,
            "passes_completed": self.passes_completed,
            "last_started_at": self.last_started_at,
            "last_completed_at": self.last_completed_at,
            "last_stats": self.last_stats,
            "last_error": self.last_error,
            "halt_error": self.halt_error,
        }


class SyncScheduler:
    """Owns one independent sync cycle per enabled and configured item kind."""

    def __init__(
        self,
        app_settings: Optional[Settings] = None,
        runner: Optional[PassRunner] = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.settings = app_settings or settings
        self._runner = runner or functools.partial(run_sync_pass, app_settings=self.settings)
        self._sleep = sleep
        self.cycles: Dict[str, SyncCycle] = {}
        self.running = False

    def _build_cycles(self) -> None:
        self.cycles = {}
        for kind in SYNC_KINDS:
            if not self.settings.is_enabled(kind):
                logger.info(f"{kind} sync disabled by configuration")
                continue
            if not self.settings.database_id_for(kind):
                logger.warning(f"No Notion database configured for {kind}; not scheduling it")
                continue
            self.cycles[kind] = SyncCycle(
                kind,
                self._runner,
                interval_seconds=self.settings.sync_interval_minutes * 60,
                sleep=self._sleep,
            )

    async def start(self) -> None:
        """Start every configured cycle."""
        if self.running:
            logger.warning("Sync scheduler is already running")
            return

        self._build_cycles()
        self.running = True
        for cycle in self.cycles.values():
            cycle.start()

        logger.info(
            f"Sync scheduler started for {self.settings.github_repo_owner}/"
            f"{self.settings.github_repo_name} (kinds: {', '.join(self.cycles) or 'none'}, "
            f"GitHub token {redact_token(self.settings.github_key)}, "
            f"Notion token {redact_token(self.settings.notion_key)})"
        )

    async def stop(self) -> None:
        """Cancel every cycle; an in-flight pass is abandoned."""
        if not self.running and not self.cycles:
            return
        logger.info("Stopping sync scheduler...")
        for cycle in self.cycles.values():
            await cycle.stop()
        self.running = False
        logger.info("Sync scheduler stopped")

    def get_cycle(self, kind: str) -> Optional[SyncCycle]:
        return self.cycles.get(kind)


# Global scheduler instance
scheduler = SyncScheduler()
