"""
Scheduled jobs, run inside the FastAPI process.

Each job type has max_instances=1, so a slow listing run is never overlapped
by the next one; listing, removal and message jobs may overlap each other.
"""

import logging
from datetime import datetime
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from dropsync.core.config import Settings, get_settings
from dropsync.core.enums import JobType
from dropsync.dependencies import get_container

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None


async def run_scheduled_job(job_type: str):
    """Entry point APScheduler calls; errors surface through job_listener."""
    logger.info(f"=== SCHEDULED {job_type.upper()} STARTING ===")
    result = await get_container().run_job(JobType(job_type))
    logger.info(f"Scheduled {job_type} finished: {result}")
    return result


def job_listener(event):
    """Listen to job events for logging"""
    if event.exception:
        logger.error(f"Job {event.job_id} crashed: {event.exception}")
    else:
        logger.info(f"Job {event.job_id} executed successfully at {datetime.now()}")


def removal_job_type(settings: Settings) -> JobType:
    if settings.REMOVAL_MODE == "scheduled":
        return JobType.SCHEDULED_REMOVAL
    return JobType.REMOVAL


def create_scheduler(settings: Optional[Settings] = None) -> AsyncIOScheduler:
    """Create and configure the scheduler"""
    global scheduler

    if scheduler is not None:
        return scheduler

    settings = settings or get_settings()
    scheduler = AsyncIOScheduler()
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    if not settings.SCHEDULER_ENABLED:
        logger.info("Scheduler is disabled. Set SCHEDULER_ENABLED=true to enable")
        return scheduler

    jobs = (
        (JobType.LISTING, settings.LISTING_CRON, "List New Products"),
        (removal_job_type(settings), settings.REMOVAL_CRON, "Remove Listings"),
        (JobType.MESSAGES, settings.MESSAGES_CRON, "Answer Buyer Messages"),
    )
    for job_type, cron, name in jobs:
        scheduler.add_job(
            run_scheduled_job,
            CronTrigger.from_crontab(cron),
            args=[job_type.value],
            id=job_type.value,
            name=name,
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=3600
        )
        logger.info(f"Scheduled {job_type.value} job with schedule: {cron}")

    return scheduler


def _describe(job) -> dict:
    next_run = getattr(job, "next_run_time", None)
    return {
        "id": job.id,
        "name": job.name,
        "next_run": next_run.isoformat() if next_run else None,
        "trigger": str(job.trigger),
    }


async def start_scheduler(settings: Optional[Settings] = None):
    """Build the scheduler if needed and start it; a second call is a no-op."""
    global scheduler

    if scheduler is None:
        scheduler = create_scheduler(settings)
    if scheduler.running:
        return

    scheduler.start()
    jobs = scheduler.get_jobs()
    logger.info(f"Scheduler started with {len(jobs)} jobs")
    for job in jobs:
        logger.info(f"  - {job.name} ({job.id}): {job.trigger}")


async def stop_scheduler():
    """Shut down without waiting for running jobs and drop the instance."""
    global scheduler

    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    scheduler = None


async def get_scheduler_status():
    if scheduler is None:
        return {"status": "not_initialized", "jobs": []}
    return {
        "status": "running" if scheduler.running else "stopped",
        "jobs": [_describe(job) for job in scheduler.get_jobs()],
    }
