"""
Applications Background Jobs

Scheduled tasks for the approval workflow:
1. Remind approvers who have left an application waiting
2. Delete expired approval tokens

Design Principles:
- Jobs are idempotent (safe to run multiple times)
- Jobs open their own database sessions
- Individual application failures don't stop the job
- Reminder emails reuse the normal approval link format with a fresh token

Schedule:
- Both jobs run hourly
- Jobs can also be triggered manually via the debug endpoints
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from appointments.core.config import settings
from appointments.core.database import async_session_maker
from appointments.core.email import NotificationDeliveryError
from appointments.core.locks import record_lock
from appointments.core.scheduler import register_job
from appointments.modules.applications import notifications, repository
from appointments.modules.applications.models import Application
from appointments.modules.applications.service import issue_approval_token

logger = logging.getLogger(__name__)

# Job IDs for registration and manual triggering
JOB_ID_SEND_REMINDERS = "applications_send_approver_reminders"
JOB_ID_CLEANUP_TOKENS = "applications_cleanup_expired_tokens"


def _days_since(moment: datetime, now: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return max(0, (now - moment).days)


async def _process_reminder(application_id: str, now: datetime) -> dict[str, Any]:
    """
    Remind the current approver of a single application.

    Reloads the application in its own session so a decision recorded since
    the job's query is respected.
    """
    async with record_lock(application_id), async_session_maker() as db:
        application: Application | None = await repository.get_by_id(db, application_id)
        approver = application.current_approver if application else None

        if approver is None:
            return {
                "application_id": application_id,
                "status": "skipped",
                "reason": "no_pending_approver",
            }

        token = await issue_approval_token(db, application)

        try:
            await notifications.notify_reminder(
                application,
                approver,
                token,
                days_pending=_days_since(application.updated_at, now),
            )
            email_sent = True
        except NotificationDeliveryError as e:
            logger.error(f"Failed to send reminder for application {application_id}: {e}")
            email_sent = False

        # Mark even on failure so a broken address doesn't trigger a reminder every hour
        await repository.mark_reminder_sent(db, application_id, now)

        return {
            "application_id": application_id,
            "status": "sent" if email_sent else "marked_sent_email_failed",
            "approver_role": approver["role"],
        }


async def send_approver_reminders() -> dict[str, Any]:
    """
    Remind approvers about stalled applications.

    An application is stalled when it is undecided and has not changed for
    ``stalled_threshold_days``. Each one is reminded at most once every
    ``reminder_interval_days``.

    Returns:
        Summary with counts and per-application results
    """
    now = datetime.now(UTC)
    stalled_before = now - timedelta(days=settings.stalled_threshold_days)
    reminded_before = now - timedelta(days=settings.reminder_interval_days)

    logger.info("Starting approver reminder job")

    async with async_session_maker() as db:
        stalled = await repository.get_stalled_applications(db, stalled_before, reminded_before)
        application_ids = [application.id for application in stalled]

    logger.info(f"Found {len(application_ids)} stalled application(s)")

    results: list[dict[str, Any]] = []
    errors = 0

    for application_id in application_ids:
        try:
            results.append(await _process_reminder(application_id, now))
        except Exception as e:
            errors += 1
            logger.error(
                f"Error processing reminder for application {application_id}: {e}",
                exc_info=True,
            )
            results.append({"application_id": application_id, "status": "error", "error": str(e)})

    summary = {
        "job": JOB_ID_SEND_REMINDERS,
        "processed": len(application_ids),
        "sent": sum(1 for r in results if r["status"] == "sent"),
        "errors": errors,
        "results": results,
    }
    logger.info(
        f"Approver reminder job complete: processed={summary['processed']}, "
        f"sent={summary['sent']}, errors={errors}"
    )
    return summary


async def cleanup_expired_tokens() -> dict[str, Any]:
    """Delete approval tokens past their expiry."""
    async with async_session_maker() as db:
        deleted = await repository.delete_expired_tokens(db)

    logger.info(f"Deleted {deleted} expired approval token(s)")
    return {"job": JOB_ID_CLEANUP_TOKENS, "deleted": deleted}


def register_application_jobs() -> None:
    """Register the applications jobs with the scheduler."""
    register_job(
        job_id=JOB_ID_SEND_REMINDERS,
        func=send_approver_reminders,
        trigger=IntervalTrigger(hours=1),
    )
    logger.info(f"Registered job: {JOB_ID_SEND_REMINDERS} (interval: 1 hour)")

    register_job(
        job_id=JOB_ID_CLEANUP_TOKENS,
        func=cleanup_expired_tokens,
        trigger=IntervalTrigger(hours=1),
    )
    logger.info(f"Registered job: {JOB_ID_CLEANUP_TOKENS} (interval: 1 hour)")
