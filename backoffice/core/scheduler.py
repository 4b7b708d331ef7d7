"""
Back-Office Scheduled Jobs.

Reminder tick: fires at second 0 of every minute in the configured
timezone and runs one ReminderEvaluator pass.

Expiry sweep: a nightly purge of expired sent markers and backups.

Both jobs run on an APScheduler AsyncIOScheduler sharing the API's event
loop. A tick that overruns is not started twice (max_instances=1), and
missed runs collapse into one (coalesce=True).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

if TYPE_CHECKING:
    from backoffice.core.reminder_evaluator import ReminderEvaluator
    from backoffice.data.db import DocumentStore

logger = logging.getLogger(__name__)

REMINDER_JOB_ID = "reminder_tick"
PURGE_JOB_ID = "expiry_purge"

# Seconds a tick may start late before APScheduler drops it. Anything past
# the minute would evaluate the wrong HH:MM anyway.
_TICK_GRACE_SECONDS = 30


async def run_reminder_tick(evaluator: ReminderEvaluator) -> None:
    """Job body: one tick, errors logged so the scheduler keeps running."""
    try:
        await evaluator.tick()
    except Exception as exc:
        logger.error("Reminder tick failed: %s", exc, exc_info=True)


def purge_expired(store: DocumentStore) -> None:
    removed = store.purge_expired()
    logger.info("Nightly expiry sweep removed %d documents", removed)


def build_scheduler(
    evaluator: ReminderEvaluator,
    store: DocumentStore,
    timezone: str | None = None,
) -> AsyncIOScheduler:
    """Create (but do not start) the scheduler with both jobs registered."""
    if timezone is None:
        from backoffice.config import settings
        timezone = settings.TIMEZONE
    tz = ZoneInfo(timezone)

    scheduler = AsyncIOScheduler(timezone=tz)
    scheduler.add_job(
        run_reminder_tick,
        trigger=CronTrigger(second=0, timezone=tz),
        args=[evaluator],
        id=REMINDER_JOB_ID,
        name="reminder tick",
        max_instances=1,
        coalesce=True,
        misfire_grace_time=_TICK_GRACE_SECONDS,
        replace_existing=True,
    )
    scheduler.add_job(
        purge_expired,
        trigger=CronTrigger(hour=3, minute=0, timezone=tz),
        args=[store],
        id=PURGE_JOB_ID,
        name="expiry purge",
        replace_existing=True,
    )
    logger.info("Reminder tick scheduled every minute (%s)", timezone)
    return scheduler
