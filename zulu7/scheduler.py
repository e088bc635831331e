"""
Zulu7 — Background Jobs
────────────────────────
Only one job today: the published-config sweep, once at startup and then
every SWEEP_INTERVAL_HOURS. max_instances=1 means a tick that arrives while
the previous sweep is still running is skipped, not stacked.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from zulu7.cache.ttl_config import SWEEP_INTERVAL_HOURS
from zulu7.store.published import PublishedConfigStore

log = logging.getLogger("zulu7.scheduler")

_scheduler: Optional[AsyncIOScheduler] = None


def start_scheduler(store: PublishedConfigStore) -> AsyncIOScheduler:
    global _scheduler
    if _scheduler and _scheduler.running:
        log.warning("Scheduler already running — ignoring start call")
        return _scheduler

    _scheduler = AsyncIOScheduler(timezone="UTC")
    _scheduler.add_job(
        store.sweep,
        "interval",
        hours=SWEEP_INTERVAL_HOURS,
        id="published_sweep",
        name="Published config sweep",
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now(timezone.utc),
        replace_existing=True,
    )
    _scheduler.start()
    log.info(f"Scheduler live — published config sweep every {SWEEP_INTERVAL_HOURS}h")
    return _scheduler


def stop_scheduler():
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        log.info("Scheduler stopped")
    _scheduler = None
