"""
Applications Notification Dispatcher

Maps workflow events onto the email templates in core.email.
Every function raises NotificationDeliveryError when the email could not be
delivered; callers decide how to report it.
"""

import logging

from appointments.core.email import (
    send_application_approved,
    send_application_denied,
    send_approval_reminder,
    send_approval_request,
    send_submission_confirmation,
)
from appointments.modules.applications.helpers import role_label
from appointments.modules.applications.models import Application, ApplicationStatus

logger = logging.getLogger(__name__)


async def notify_submission(application: Application) -> None:
    """Confirm receipt to the faculty member."""
    first = application.approval_chain[0]
    await send_submission_confirmation(
        to_email=application.faculty_email,
        faculty_name=application.faculty_name,
        application_id=application.id,
        first_approver_name=f"{first['name']} ({role_label(first['role'])})",
    )
    logger.info(f"Sent submission confirmation for application {application.id}")


async def notify_approver(application: Application, approver: dict, token: str) -> None:
    """Ask ``approver`` to review and sign."""
    await send_approval_request(
        to_email=approver["email"],
        approver_name=approver["name"],
        role_label=role_label(approver["role"]),
        faculty_name=application.faculty_name,
        department=application.faculty_department or application.faculty_college,
        application_id=application.id,
        token=token,
    )
    logger.info(f"Sent approval request for application {application.id} to {approver['role']}")


async def notify_reminder(
    application: Application,
    approver: dict,
    token: str,
    days_pending: int,
) -> None:
    await send_approval_reminder(
        to_email=approver["email"],
        approver_name=approver["name"],
        role_label=role_label(approver["role"]),
        faculty_name=application.faculty_name,
        application_id=application.id,
        token=token,
        days_pending=days_pending,
    )
    logger.info(f"Sent approval reminder for application {application.id} to {approver['role']}")


async def notify_outcome(application: Application, outcome: ApplicationStatus) -> None:
    """Tell the faculty member the workflow ended."""
    if outcome == ApplicationStatus.APPROVED:
        await send_application_approved(
            to_email=application.faculty_email,
            faculty_name=application.faculty_name,
            application_id=application.id,
        )
    elif outcome == ApplicationStatus.DENIED:
        last = application.status_history[-1]
        denied_by = last.approver_name or "an approver"
        if last.approver_role is not None:
            denied_by = f"{denied_by} ({role_label(last.approver_role)})"
        await send_application_denied(
            to_email=application.faculty_email,
            faculty_name=application.faculty_name,
            application_id=application.id,
            denied_by=denied_by,
            notes=last.notes,
        )
    else:
        raise ValueError(f"{outcome.value} is not a final outcome")

    logger.info(f"Sent {outcome.value} notice for application {application.id}")
