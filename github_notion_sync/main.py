from contextlib import asynccontextmanager
import logging
from datetime import datetime, timezone

from fastapi import FastAPI

from github_notion_sync.config import settings
from github_notion_sync.api import health, sync
from github_notion_sync.core.sync_scheduler import scheduler

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the sync cycles with the app; settle manual passes and cancel the cycles on shutdown."""
    logger.info(f"Starting {settings.app_title}")
    await scheduler.start()
    yield
    await sync.wait_for_manual_syncs(timeout=settings.shutdown_timeout_seconds)
    await scheduler.stop()


app = FastAPI(
    title=settings.app_title,
    description=settings.app_description,
    version="0.1.0",
    lifespan=lifespan
)

app.include_router(health.router)
app.include_router(sync.router)


@app.get("/health")
async def health_legacy():
    """Liveness check; for cycle status use /api/health."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


def run():
    """Console entry point."""
    import uvicorn
    uvicorn.run(
        "github_notion_sync.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
