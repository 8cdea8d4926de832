# heatmap/scheduler.py
"""
Scheduler bootstrap.

Runs the two recurring market-data jobs on an APScheduler
BackgroundScheduler:

    daily_price_update   weekdays at DAILY_UPDATE_HOUR:DAILY_UPDATE_MINUTE
    weekly_backfill      BACKFILL_DAY_OF_WEEK at BACKFILL_HOUR

The scheduler is orchestration-only and contains no business logic. Each
job opens its own session and correlation id.

Usage:
    from heatmap.scheduler import start_scheduler, shutdown_scheduler

    start_scheduler()
    ...
    shutdown_scheduler()
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from heatmap.config import settings
from heatmap.database import session_scope
from heatmap.dependencies import get_backfill_populator, get_price_update_service
from heatmap.utils.context import correlation_scope

logger = logging.getLogger(__name__)

DAILY_UPDATE_JOB_ID = "daily_price_update"
WEEKLY_BACKFILL_JOB_ID = "weekly_backfill"

_SCHEDULER: BackgroundScheduler | None = None


# =============================================================================
# JOBS
# =============================================================================

def run_daily_update_job() -> None:
    with correlation_scope(f"job-{DAILY_UPDATE_JOB_ID}"), session_scope() as db:
        result = get_price_update_service().update_daily_prices(db)
        logger.info(f"Daily update job wrote {result.rows_written} rows")


def run_weekly_backfill_job() -> None:
    with correlation_scope(f"job-{WEEKLY_BACKFILL_JOB_ID}"), session_scope() as db:
        written = get_backfill_populator().populate_all_history(db)
        logger.info(f"Weekly backfill job wrote {written} rows")


# =============================================================================
# LIFECYCLE
# =============================================================================

def register_jobs(scheduler: BackgroundScheduler) -> None:
    """Add both jobs to a scheduler; re-registering replaces them."""
    scheduler.add_job(
        run_daily_update_job,
        trigger=CronTrigger(
            day_of_week="mon-fri",
            hour=settings.daily_update_hour,
            minute=settings.daily_update_minute,
            timezone=settings.scheduler_timezone,
        ),
        id=DAILY_UPDATE_JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    scheduler.add_job(
        run_weekly_backfill_job,
        trigger=CronTrigger(
            day_of_week=settings.backfill_day_of_week,
            hour=settings.backfill_hour,
            minute=0,
            timezone=settings.scheduler_timezone,
        ),
        id=WEEKLY_BACKFILL_JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )


def start_scheduler() -> BackgroundScheduler:
    """Start the background scheduler once per process and return it."""
    global _SCHEDULER

    if _SCHEDULER is not None:
        return _SCHEDULER

    scheduler = BackgroundScheduler(timezone=settings.scheduler_timezone)
    register_jobs(scheduler)
    scheduler.start()
    _SCHEDULER = scheduler

    logger.info(
        f"Scheduler started ({settings.scheduler_timezone}): "
        f"{', '.join(job.id for job in scheduler.get_jobs())}"
    )
    return scheduler


def shutdown_scheduler() -> None:
    global _SCHEDULER

    if _SCHEDULER is not None:
        _SCHEDULER.shutdown(wait=False)
        _SCHEDULER = None
        logger.info("Scheduler shut down")
