"""
Background Job Scheduler

Scheduled task execution using APScheduler with AsyncIO support.

Jobs are registered (usually before startup) with ``register_job``; the
registry remembers each job's trigger so ``start_scheduler`` can schedule
everything registered so far. Registered jobs can also be run on demand
with ``trigger_job_manually``.

Usage:
    register_job("my_job", my_job, IntervalTrigger(hours=1))
    await start_scheduler()
    ...
    await stop_scheduler()
"""

import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Coroutine[Any, Any, Any]]

_scheduler: AsyncIOScheduler | None = None


@dataclass
class RegisteredJob:
    func: JobFunc
    trigger: BaseTrigger


_job_registry: dict[str, RegisteredJob] = {}


class SchedulerConfig:
    """Configuration for the background scheduler."""

    TIMEZONE = "UTC"

    JOB_DEFAULTS = {
        "coalesce": True,  # Combine missed executions into one
        "max_instances": 1,
        "misfire_grace_time": 60 * 5,
    }


def _job_listener(event: JobExecutionEvent) -> None:
    if event.exception:
        logger.error(
            f"Job {event.job_id} failed with exception: {event.exception}",
            exc_info=event.exception,
        )
    else:
        logger.info(f"Job {event.job_id} executed successfully at {datetime.now(UTC).isoformat()}")


def get_scheduler() -> AsyncIOScheduler | None:
    return _scheduler


def _schedule(job_id: str, job: RegisteredJob) -> None:
    if _scheduler is None:
        raise RuntimeError("Scheduler has not been started")
    _scheduler.add_job(job.func, trigger=job.trigger, id=job_id, replace_existing=True)
    logger.info(f"Scheduled job: {job_id}")


async def start_scheduler() -> AsyncIOScheduler:
    """
    Create and start the scheduler, scheduling every registered job.

    Returns:
        The running scheduler instance
    """
    global _scheduler

    if _scheduler is not None and _scheduler.running:
        logger.warning("Scheduler already running, returning existing instance")
        return _scheduler

    logger.info("Initializing background job scheduler...")

    _scheduler = AsyncIOScheduler(
        timezone=SchedulerConfig.TIMEZONE,
        job_defaults=SchedulerConfig.JOB_DEFAULTS,
    )
    _scheduler.add_listener(_job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    for job_id, job in _job_registry.items():
        _schedule(job_id, job)

    _scheduler.start()

    logger.info(f"Background job scheduler started with {len(_job_registry)} job(s)")
    return _scheduler


async def stop_scheduler() -> None:
    """Stop the scheduler, waiting for running jobs to finish."""
    global _scheduler

    if _scheduler is None or not _scheduler.running:
        logger.debug("Scheduler not running, nothing to stop")
        return

    logger.info("Stopping background job scheduler...")
    _scheduler.shutdown(wait=True)
    _scheduler = None
    logger.info("Background job scheduler stopped")


def register_job(job_id: str, func: JobFunc, trigger: BaseTrigger) -> None:
    """
    Register a job.

    If the scheduler is already running the job is scheduled immediately,
    otherwise it is scheduled when ``start_scheduler`` runs.

    Args:
        job_id: Unique identifier for the job
        func: Async function to execute
        trigger: APScheduler trigger (IntervalTrigger, CronTrigger, etc.)
    """
    job = RegisteredJob(func=func, trigger=trigger)
    _job_registry[job_id] = job

    if _scheduler is not None and _scheduler.running:
        _schedule(job_id, job)
    else:
        logger.debug(f"Scheduler not running, job {job_id} will be scheduled on start")


async def trigger_job_manually(job_id: str) -> dict[str, Any]:
    """
    Run a registered job right now, bypassing the schedule.

    Returns:
        Dict with job_id, status ("success" or "error"), executed_at,
        the job's return value as ``result``, and ``error`` on failure

    Raises:
        ValueError: If job_id is not registered
    """
    if job_id not in _job_registry:
        raise ValueError(
            f"Job {job_id} not found in registry. Available jobs: {list(_job_registry.keys())}"
        )

    executed_at = datetime.now(UTC)
    logger.info(f"Manually triggering job: {job_id}")

    try:
        result = await _job_registry[job_id].func()
        logger.info(f"Manual execution of job {job_id} completed successfully")
        return {
            "job_id": job_id,
            "status": "success",
            "executed_at": executed_at.isoformat(),
            "result": result,
        }
    except Exception as e:
        logger.error(f"Manual execution of job {job_id} failed: {e}", exc_info=True)
        return {
            "job_id": job_id,
            "status": "error",
            "executed_at": executed_at.isoformat(),
            "error": str(e),
        }


def list_registered_jobs() -> list[dict[str, Any]]:
    """List registered jobs with their next run time and pause state."""
    jobs = []

    for job_id in _job_registry:
        job_info: dict[str, Any] = {"job_id": job_id, "registered": True}

        scheduled_job = _scheduler.get_job(job_id) if _scheduler is not None else None
        if scheduled_job:
            next_run = scheduled_job.next_run_time
            job_info["next_run_time"] = next_run.isoformat() if next_run else None
            job_info["is_paused"] = next_run is None
        else:
            job_info["next_run_time"] = None
            job_info["is_paused"] = True

        jobs.append(job_info)

    return jobs


def pause_job(job_id: str) -> bool:
    """Pause a scheduled job. Returns False if it is not scheduled."""
    if _scheduler is None or _scheduler.get_job(job_id) is None:
        logger.warning(f"Job not found for pausing: {job_id}")
        return False

    _scheduler.pause_job(job_id)
    logger.info(f"Paused job: {job_id}")
    return True


def resume_job(job_id: str) -> bool:
    """Resume a paused job. Returns False if it is not scheduled."""
    if _scheduler is None or _scheduler.get_job(job_id) is None:
        logger.warning(f"Job not found for resuming: {job_id}")
        return False

    _scheduler.resume_job(job_id)
    logger.info(f"Resumed job: {job_id}")
    return True
