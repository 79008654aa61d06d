"""
Scheduler for periodic registry refreshes.

Uses APScheduler to re-run the same refresh the `refresh` command runs,
every `refresh_interval_minutes` (30 by default).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from mcpkit.core.service import McpKitService
from mcpkit.lib.typed_errors import TypedError

logger = logging.getLogger(__name__)

REFRESH_JOB_ID = "registry_refresh"

# Global scheduler instance
_scheduler: Optional[AsyncIOScheduler] = None


async def _run_refresh_job(service: McpKitService) -> None:
    """Job function that refreshes the registry."""
    result = await service.refresh_catalog()
    if isinstance(result, TypedError):
        logger.warning(f"Scheduler: registry refresh failed: {result.message}")
        return
    logger.info(f"Scheduler: registry refreshed from {result.source} ({result.count} MCPs)")


def _schedule_refresh(
    scheduler: AsyncIOScheduler,
    service: McpKitService,
    interval_minutes: int,
    run_now: bool,
) -> None:
    kwargs: dict[str, Any] = {}
    if run_now:
        # Passing next_run_time=None would add the job paused
        kwargs["next_run_time"] = datetime.now(timezone.utc)

    scheduler.add_job(
        _run_refresh_job,
        trigger=IntervalTrigger(minutes=interval_minutes),
        args=[service],
        id=REFRESH_JOB_ID,
        name="Registry refresh",
        replace_existing=True,
        **kwargs,
    )
    logger.info(f"Scheduler: registry refresh every {interval_minutes} minutes")


async def init_scheduler(
    service: McpKitService,
    interval_minutes: int = 30,
    run_now: bool = False,
) -> AsyncIOScheduler:
    """Initialize and start the scheduler."""
    global _scheduler

    if _scheduler is not None:
        logger.warning("Scheduler already initialized")
        return _scheduler

    _scheduler = AsyncIOScheduler()
    _schedule_refresh(_scheduler, service, interval_minutes, run_now)

    _scheduler.start()
    logger.info("Scheduler started")

    return _scheduler


async def stop_scheduler():
    """Stop the scheduler."""
    global _scheduler

    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Scheduler stopped")


def get_scheduler() -> Optional[AsyncIOScheduler]:
    """Get the scheduler instance."""
    return _scheduler


def get_scheduler_status() -> dict[str, Any]:
    """Get the current scheduler status."""
    status: dict[str, Any] = {
        "running": bool(_scheduler and _scheduler.running),
        "jobs": [],
    }
    if _scheduler and _scheduler.running:
        for job in _scheduler.get_jobs():
            next_run = job.next_run_time
            status["jobs"].append({
                "id": job.id,
                "name": job.name,
                "next_run": next_run.isoformat() if next_run else None,
                "trigger": str(job.trigger),
            })
    return status
