"""
Email Service using Resend

Handles sending emails for the secondary appointment approval flow:
- Submission confirmation to the faculty member
- Approval request (with signature link) to the current approver
- Reminder to an approver whose action is overdue
- Final decision (approved / denied) to the faculty member

Delivery is retried a bounded number of times. When every attempt fails a
NotificationDeliveryError is raised; callers decide whether that is fatal.
"""

import asyncio
import logging
from html import escape
from urllib.parse import quote

import resend

from appointments.core.config import settings

logger = logging.getLogger(__name__)

resend.api_key = settings.resend_api_key

_STYLES = """
    body { font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }
    .container { max-width: 600px; margin: 0 auto; padding: 40px 20px; }
    .header { color: #1c2d4a; margin-bottom: 24px; }
    .button { display: inline-block; background-color: #1c2d4a; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }
    .info-box { background-color: #f3f4f6; padding: 16px; border-radius: 8px; margin: 16px 0; }
    .success-box { background-color: #ecfdf5; border-left: 4px solid #059669; padding: 16px; margin: 16px 0; }
    .warning-box { background-color: #fef3c7; border-left: 4px solid #f59e0b; padding: 16px; margin: 16px 0; }
    .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }
"""


class NotificationDeliveryError(Exception):
    """Raised when an email could not be delivered after all retry attempts."""

    def __init__(self, to_email: str, subject: str, attempts: int, last_error: Exception | None):
        self.to_email = to_email
        self.subject = subject
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Failed to deliver '{subject}' to {to_email} after {attempts} attempt(s)")


def _render(title: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>{_STYLES}</style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">{title}</h1>
            {body}
            <div class="footer">
                <p>Faculty Secondary Appointments</p>
            </div>
        </div>
    </body>
    </html>
    """


def build_signature_url(application_id: str, approver_email: str, token: str) -> str:
    """Build the signature page link sent to an approver."""
    return (
        f"{settings.frontend_url}/signature/{quote(application_id)}"
        f"?approver={quote(approver_email)}&token={quote(token)}"
    )


def build_status_url(application_id: str) -> str:
    return f"{settings.frontend_url}/status/{quote(application_id)}"


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
) -> str | None:
    """
    Send an email using Resend, retrying transient failures.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        html_content: HTML content of the email

    Returns:
        The provider message id, or None when sending is disabled

    Raises:
        NotificationDeliveryError: If every attempt failed
    """
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return None

    params: resend.Emails.SendParams = {
        "from": settings.email_from,
        "to": [to_email],
        "subject": subject,
        "html": html_content,
    }

    max_attempts = max(1, settings.email_max_attempts)
    last_error: Exception | None = None

    for attempt in range(1, max_attempts + 1):
        try:
            # Run sync Resend call in thread pool to avoid blocking event loop
            email = await asyncio.to_thread(resend.Emails.send, params)
            logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")
            return email["id"]
        except Exception as e:
            last_error = e
            logger.warning(
                f"Email attempt {attempt}/{max_attempts} to {to_email} failed: {e}"
            )
            if attempt < max_attempts:
                await asyncio.sleep(settings.email_retry_delay_seconds * (2 ** (attempt - 1)))

    logger.error(f"Giving up on email to {to_email} after {max_attempts} attempts")
    raise NotificationDeliveryError(to_email, subject, max_attempts, last_error)


async def send_submission_confirmation(
    to_email: str,
    faculty_name: str,
    application_id: str,
    first_approver_name: str,
) -> str | None:
    """Confirm receipt of an application to the faculty member."""
    safe_name = escape(faculty_name)
    safe_id = escape(application_id)
    safe_approver = escape(first_approver_name)
    status_url = build_status_url(application_id)

    body = f"""
            <p>Dear {safe_name},</p>

            <p>Your secondary appointment application has been received.</p>

            <div class="info-box">
                <p><strong>Application ID:</strong> {safe_id}</p>
                <p><strong>Next step:</strong> review by {safe_approver}</p>
            </div>

            <p>Each approver on your form will be asked to sign in turn. You will be
            notified by email once a final decision has been made.</p>

            <a href="{status_url}" class="button">Track Application</a>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Secondary appointment application received ({safe_id})",
        html_content=_render("Application Received", body),
    )


async def send_approval_request(
    to_email: str,
    approver_name: str,
    role_label: str,
    faculty_name: str,
    department: str,
    application_id: str,
    token: str,
) -> str | None:
    """Ask the current approver to review and sign the application."""
    safe_approver = escape(approver_name)
    safe_role = escape(role_label)
    safe_faculty = escape(faculty_name)
    safe_department = escape(department)
    safe_id = escape(application_id)
    signature_url = build_signature_url(application_id, to_email, token)

    body = f"""
            <p>Dear {safe_approver},</p>

            <p>A secondary appointment application for <strong>{safe_faculty}</strong>
            ({safe_department}) requires your review as <strong>{safe_role}</strong>.</p>

            <div class="info-box">
                <p><strong>Application ID:</strong> {safe_id}</p>
            </div>

            <a href="{signature_url}" class="button">Review and Sign</a>

            <p>Or copy and paste this link into your browser:</p>
            <p style="word-break: break-all; color: #3b82f6;">{signature_url}</p>

            <p><strong>This link expires in {settings.approval_token_expiry_days} days.</strong></p>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Approval requested: secondary appointment for {safe_faculty}",
        html_content=_render("Approval Requested", body),
    )


async def send_approval_reminder(
    to_email: str,
    approver_name: str,
    role_label: str,
    faculty_name: str,
    application_id: str,
    token: str,
    days_pending: int,
) -> str | None:
    """Remind the current approver that an application is still waiting on them."""
    safe_approver = escape(approver_name)
    safe_role = escape(role_label)
    safe_faculty = escape(faculty_name)
    safe_id = escape(application_id)
    signature_url = build_signature_url(application_id, to_email, token)

    body = f"""
            <p>Dear {safe_approver},</p>

            <div class="warning-box">
                <p>The secondary appointment application for <strong>{safe_faculty}</strong>
                has been waiting for your signature as {safe_role} for {days_pending} day(s).</p>
            </div>

            <p><strong>Application ID:</strong> {safe_id}</p>

            <a href="{signature_url}" class="button">Review and Sign</a>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Reminder: approval pending for {safe_faculty}",
        html_content=_render("Approval Reminder", body),
    )


async def send_application_approved(
    to_email: str,
    faculty_name: str,
    application_id: str,
) -> str | None:
    """Tell the faculty member every approver has signed."""
    safe_name = escape(faculty_name)
    safe_id = escape(application_id)

    body = f"""
            <p>Dear {safe_name},</p>

            <div class="success-box">
                <p>Your secondary appointment application <strong>{safe_id}</strong>
                has been approved by all required approvers.</p>
            </div>

            <p>The appointment office will contact you regarding next steps.</p>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Secondary appointment approved ({safe_id})",
        html_content=_render("Application Approved", body),
    )


async def send_application_denied(
    to_email: str,
    faculty_name: str,
    application_id: str,
    denied_by: str,
    notes: str | None = None,
) -> str | None:
    """Tell the faculty member their application was denied."""
    safe_name = escape(faculty_name)
    safe_id = escape(application_id)
    safe_denied_by = escape(denied_by)
    notes_html = f"<p><strong>Comments:</strong> {escape(notes)}</p>" if notes else ""

    body = f"""
            <p>Dear {safe_name},</p>

            <p>Your secondary appointment application <strong>{safe_id}</strong>
            was not approved by {safe_denied_by}.</p>

            {notes_html}

            <p>If you have questions about this decision, please contact your
            department office.</p>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Secondary appointment application update ({safe_id})",
        html_content=_render("Application Not Approved", body),
    )
