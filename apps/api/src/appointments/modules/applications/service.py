"""
Applications Service Layer

Business logic for faculty secondary appointment applications.
Orchestrates validation, CV storage, repository operations, approval
tokens and email notifications.

This module implements:
1. Submission Flow:
   - Validate the form, CV and catalog college in a single validation stage
   - Store the CV and create the application (status SUBMITTED)
   - Issue an approval token and notify the first approver

2. Decision Flow (approve / deny):
   - Serialized per application id
   - NotFound -> terminal state -> stale approver -> wrong approver -> token
   - Append history, advance or end the chain, persist, then notify

3. Read Views:
   - Detail, list, search, applicant dashboard and status page
   - CV download, approval token check, metrics

Security considerations:
- Tokens use cryptographically secure random generation (secrets.token_urlsafe)
- Tokens are SHA-256 hashed before storage
- A token is bound to one application, approver and chain position
- Case-insensitive email comparison
- No token values logged

Notification failures never undo a persisted transition. They are logged
and returned to the caller as warnings.
"""

import hashlib
import logging
import secrets
from collections.abc import Awaitable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from appointments.core.config import settings
from appointments.core.email import NotificationDeliveryError
from appointments.core.locks import record_lock
from appointments.core.storage import (
    ALLOWED_CV_MIME_TYPES,
    DocumentNotFoundError,
    delete_document,
    resolve_document,
    save_document,
)
from appointments.modules.applications import notifications, repository
from appointments.modules.applications.helpers import (
    DecisionAction,
    apply_decision,
    generate_application_id,
    has_signed_before,
    is_terminal,
    normalize_email,
    role_label,
)
from appointments.modules.applications.models import (
    Application,
    ApplicationStatus,
    ApprovalToken,
    ApproverRole,
)
from appointments.modules.applications.schemas import (
    ApplicationStatusResponse,
    ApplicationSubmission,
    ApproverOut,
    CVUpload,
    DecisionResponse,
    DecisionResult,
    FieldError,
    MetricsOut,
    RecentActivityItem,
    StatusStep,
    SubmissionValidationResult,
    SubmitResponse,
    SubmitResult,
    TokenValidationResponse,
)
from appointments.modules.colleges import service as college_service

logger = logging.getLogger(__name__)

TOKEN_LENGTH = 32  # 256 bits of entropy when using token_urlsafe
RECENT_ACTIVITY_LIMIT = 10


def _hash_token(token: str) -> str:
    """
    Hash a token for secure storage using SHA-256.

    Args:
        token: The plain text token to hash

    Returns:
        Hex-encoded SHA-256 hash of the token
    """
    return hashlib.sha256(token.encode()).hexdigest()


def _generate_secure_token() -> str:
    return secrets.token_urlsafe(TOKEN_LENGTH)


def _calculate_token_expiry(now: datetime | None = None) -> datetime:
    return (now or datetime.now(UTC)) + timedelta(days=settings.approval_token_expiry_days)


def _as_utc(value: datetime) -> datetime:
    # Some drivers hand back naive datetimes for timestamptz columns
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


# ============================================
# Errors
# ============================================


class ApplicationServiceError(Exception):
    """Base exception for application service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class ApplicationValidationError(ApplicationServiceError):
    """Raised when a submission is missing fields or has malformed ones."""

    def __init__(self, errors: list[FieldError]):
        self.errors = errors
        summary = "; ".join(f"{e.field}: {e.message}" for e in errors)
        super().__init__(
            message=f"Application validation failed: {summary}",
            error_code="VALIDATION_FAILED",
            status_code=400,
        )


class ApplicationNotFoundError(ApplicationServiceError):
    """Raised when an application is not found."""

    def __init__(self, application_id: str | None = None):
        message = (
            f"Application {application_id} not found" if application_id else "Application not found"
        )
        super().__init__(
            message=message,
            error_code="APPLICATION_NOT_FOUND",
            status_code=404,
        )


class ApproverAuthorizationError(ApplicationServiceError):
    """Raised when the caller is not the approver whose action is pending."""

    def __init__(self, message: str = "You are not the current approver for this application."):
        super().__init__(
            message=message,
            error_code="APPROVER_NOT_AUTHORIZED",
            status_code=403,
        )


class InvalidApplicationStateError(ApplicationServiceError):
    """Raised when an application is not in the expected state for an operation."""

    def __init__(self, message: str, current_state: str | None = None):
        detail = message
        if current_state:
            detail = f"{message} Current state: {current_state}"
        super().__init__(
            message=detail,
            error_code="INVALID_APPLICATION_STATE",
            status_code=409,
        )


class InvalidEmailError(ApplicationServiceError):
    """Raised when the provided email doesn't match the application."""

    def __init__(self):
        super().__init__(
            message="Email does not match the application",
            error_code="INVALID_EMAIL",
            status_code=403,
        )


class CVNotFoundError(ApplicationServiceError):
    """Raised when the stored CV for an application is missing."""

    def __init__(self, application_id: str):
        super().__init__(
            message=f"CV for application {application_id} is not available",
            error_code="CV_NOT_FOUND",
            status_code=404,
        )


# ============================================
# Notification dispatch
# ============================================


async def _dispatch(
    notification: Awaitable[None],
    description: str,
    warnings: list[str],
) -> None:
    """
    Await a notification, turning delivery failures into warnings.

    The state change it reports is already committed, so nothing here may
    raise.
    """
    try:
        await notification
    except NotificationDeliveryError as e:
        logger.warning(f"Notification failed ({description}): {e}")
        warnings.append(f"Could not send {description}. The change was saved.")
    except Exception as e:
        logger.error(f"Unexpected error sending {description}: {e}", exc_info=True)
        warnings.append(f"Could not send {description}. The change was saved.")


async def issue_approval_token(db: AsyncSession, application: Application) -> str:
    """Create a token for the current approver and return the plain value."""
    approver = application.current_approver
    if approver is None:
        raise ValueError(f"Application {application.id} has no pending approver")

    token = _generate_secure_token()
    await repository.create_token(
        db=db,
        application_id=application.id,
        token_hash=_hash_token(token),  # Store hash, not plain token
        approver_email=approver["email"],
        approver_role=ApproverRole(approver["role"]),
        chain_position=application.chain_position,
        expires_at=_calculate_token_expiry(),
    )
    return token


async def _notify_current_approver(
    db: AsyncSession,
    application: Application,
    warnings: list[str],
) -> None:
    approver = application.current_approver
    if approver is None:
        logger.error(f"Application {application.id} has no pending approver to notify")
        return
    description = f"approval request to the {role_label(approver['role'])}"

    try:
        token = await issue_approval_token(db, application)
    except Exception as e:
        logger.error(
            f"Failed to issue approval token for application {application.id}: {e}",
            exc_info=True,
        )
        warnings.append(f"Could not send {description}. The change was saved.")
        return

    await _dispatch(notifications.notify_approver(application, approver, token), description, warnings)


# ============================================
# Submission
# ============================================


def validate_submission(
    fields: dict[str, Any],
    cv: CVUpload | None,
) -> SubmissionValidationResult:
    """
    Validate a submission form and its CV in one pass.

    Args:
        fields: Raw form fields, keyed by snake_case or camelCase name
        cv: The uploaded CV, or None when no file was attached

    Returns:
        A result holding either the validated payload and CV, or every
        field error found
    """
    result = SubmissionValidationResult()

    try:
        result.submission = ApplicationSubmission.model_validate(fields)
    except ValidationError as e:
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"]) or "form"
            result.errors.append(FieldError(field=field, message=error["msg"]))

    if cv is None or not cv.file_name:
        result.errors.append(FieldError(field="cv", message="A CV document is required"))
    elif cv.content_type not in ALLOWED_CV_MIME_TYPES:
        result.errors.append(
            FieldError(field="cv", message="CV must be a PDF, DOC or DOCX document")
        )
    elif cv.size == 0:
        result.errors.append(FieldError(field="cv", message="CV file is empty"))
    elif cv.size > settings.max_cv_size_bytes:
        limit_mb = settings.max_cv_size_bytes // (1024 * 1024)
        result.errors.append(FieldError(field="cv", message=f"CV must be at most {limit_mb} MB"))
    else:
        result.cv = cv

    return result


async def check_catalog(db: AsyncSession, submission: ApplicationSubmission) -> list[FieldError]:
    """
    Check the faculty member's college and department against the catalog.

    Matching names are rewritten to the catalog's spelling. An empty catalog
    accepts any college, and a college with no departments on record accepts
    any department.
    """
    college = await college_service.find_college(db, submission.faculty_college)
    if college is None:
        if await college_service.catalog_is_empty(db):
            return []
        return [
            FieldError(
                field="facultyCollege",
                message=f"Unknown college: {submission.faculty_college}",
            )
        ]

    submission.faculty_college = college.name

    department = (submission.faculty_department or "").strip()
    if not department or not college.has_departments or not college.departments:
        return []

    known = {d.name.lower(): d.name for d in college.departments}
    if department.lower() not in known:
        return [
            FieldError(
                field="facultyDepartment",
                message=f"{department} is not a department of {college.name}",
            )
        ]

    submission.faculty_department = known[department.lower()]
    return []


async def submit_application(
    db: AsyncSession,
    fields: dict[str, Any],
    cv: CVUpload | None,
) -> SubmitResponse:
    """
    Submit a new secondary appointment application.

    This is the main entry point for the workflow. It:
    1. Validates the form fields and CV, and the college against the catalog
    2. Stores the CV document
    3. Creates the application with status SUBMITTED and one history entry
    4. Emails a confirmation to the faculty member
    5. Issues a token and emails the first approver

    Args:
        db: Database session
        fields: Raw form fields
        cv: Uploaded CV

    Returns:
        SubmitResponse with the new application id and any warnings

    Raises:
        ApplicationValidationError: If any field or the CV is invalid
    """
    validation = validate_submission(fields, cv)
    if validation.submission is not None:
        validation.errors.extend(await check_catalog(db, validation.submission))
    if not validation.ok:
        logger.info(f"Rejected application submission with {len(validation.errors)} error(s)")
        raise ApplicationValidationError(validation.errors)

    data = validation.submission
    upload = validation.cv
    if data is None or upload is None:
        raise RuntimeError("Submission passed validation without a payload and CV")

    application_id = generate_application_id()
    logger.info(f"Processing application submission {application_id}")

    cv_path = await save_document(upload.content, upload.file_name, prefix=application_id)

    try:
        application = await repository.create(
            db,
            application_id=application_id,
            data=data,
            cv_file_path=cv_path,
            cv_file_name=upload.file_name,
            cv_mime_type=upload.content_type,
            cv_file_size=upload.size,
        )
    except Exception:
        # Don't leave an orphaned CV behind
        await delete_document(cv_path)
        raise

    logger.info(
        f"Created application {application.id} with {len(application.approval_chain)} approver(s)"
    )

    warnings: list[str] = []
    await _dispatch(
        notifications.notify_submission(application),
        "submission confirmation",
        warnings,
    )
    await _notify_current_approver(db, application, warnings)

    return SubmitResponse(
        data=SubmitResult(application_id=application.id),
        message="Application submitted successfully.",
        warnings=warnings,
    )


# ============================================
# Approver decisions
# ============================================


async def _check_token(
    db: AsyncSession,
    application: Application,
    approver_email: str,
    token_string: str,
) -> ApprovalToken:
    """
    Validate an approval token against the pending chain position.

    Raises:
        ApproverAuthorizationError: If the token is unknown, expired or
            belongs to another application, approver or chain position
        InvalidApplicationStateError: If the token was already used
    """
    token = await repository.get_token_by_hash(db, _hash_token(token_string))

    if (
        token is None
        or token.application_id != application.id
        or token.approver_email != approver_email
        or token.chain_position != application.chain_position
    ):
        # Don't log token content
        logger.warning(f"Approval token rejected for application {application.id}")
        raise ApproverAuthorizationError("This approval link is not valid for this application.")

    if token.used_at is not None:
        raise InvalidApplicationStateError("This approval link has already been used.")

    if datetime.now(UTC) > _as_utc(token.expires_at):
        raise ApproverAuthorizationError("This approval link has expired.")

    return token


async def _decide(
    db: AsyncSession,
    application_id: str,
    action: DecisionAction,
    approver_email: str,
    signature: str | None,
    notes: str | None,
    token: str | None,
) -> DecisionResponse:
    email = normalize_email(approver_email)
    warnings: list[str] = []

    async with record_lock(application_id):
        application = await repository.get_by_id(db, application_id)

        if not application:
            logger.warning(f"Decision on unknown application: {application_id}")
            raise ApplicationNotFoundError(application_id)

        if is_terminal(application.status):
            raise InvalidApplicationStateError(
                "This application has already been decided.",
                application.status.value,
            )

        current = application.current_approver
        if current is None or current["email"] != email:
            if has_signed_before(application.approval_chain, email, application.chain_position):
                # Duplicate click or replayed request from an earlier approver
                raise InvalidApplicationStateError(
                    "Your decision on this application has already been recorded.",
                    application.status.value,
                )
            logger.warning(
                f"Out-of-turn decision attempt on application {application_id}: "
                f"provided email is not the current approver"
            )
            raise ApproverAuthorizationError()

        approval_token = None
        if token:
            approval_token = await _check_token(db, application, email, token)

        now = datetime.now(UTC)
        previous_status = application.status
        new_status = apply_decision(application, action, signature, notes, now)
        if approval_token is not None:
            approval_token.used_at = now

        try:
            await repository.save_transition(db, application, previous_status)
        except repository.ConcurrentUpdateError as e:
            logger.warning(f"Lost race on application {application_id}: {e}")
            raise InvalidApplicationStateError(
                "This application was updated by another request. Please reload."
            ) from e
        except repository.InvalidStatusTransitionError as e:
            logger.error(f"Status transition error: {e}")
            raise InvalidApplicationStateError(str(e), previous_status.value) from e

        logger.info(
            f"Application {application_id}: {current['role']} chose {action.value}, "
            f"{previous_status.value} -> {new_status.value}"
        )

        # Notify while still holding the lock so notifications for one
        # application go out in transition order
        if is_terminal(new_status):
            await _dispatch(
                notifications.notify_outcome(application, new_status),
                f"{new_status.value} notice to the applicant",
                warnings,
            )
        else:
            await _notify_current_approver(db, application, warnings)

    message = (
        "Application denied."
        if action == DecisionAction.DENY
        else "Approval recorded."
    )
    return DecisionResponse(
        data=DecisionResult(application_id=application_id, new_status=new_status),
        message=message,
        warnings=warnings,
    )


async def approve_application(
    db: AsyncSession,
    application_id: str,
    approver_email: str,
    signature: str | None,
    notes: str | None = None,
    token: str | None = None,
) -> DecisionResponse:
    """
    Record the current approver's approval.

    Advances to the next approver, or to APPROVED when this was the last one.

    Raises:
        ApplicationNotFoundError: Unknown id
        InvalidApplicationStateError: Terminal application, stale request,
            used token, or lost race
        ApproverAuthorizationError: Caller is not the current approver, or
            the token does not match
    """
    return await _decide(
        db, application_id, DecisionAction.APPROVE, approver_email, signature, notes, token
    )


async def deny_application(
    db: AsyncSession,
    application_id: str,
    approver_email: str,
    signature: str | None,
    notes: str | None = None,
    token: str | None = None,
) -> DecisionResponse:
    """
    Record the current approver's denial. DENIED is terminal from any position.

    Raises the same errors as approve_application.
    """
    return await _decide(
        db, application_id, DecisionAction.DENY, approver_email, signature, notes, token
    )


async def validate_approval_token(
    db: AsyncSession,
    application_id: str,
    token_string: str,
) -> TokenValidationResponse:
    """Tell the signature page whether a link can still be used."""
    token = await repository.get_token_by_hash(db, _hash_token(token_string))

    if token is None or token.application_id != application_id:
        return TokenValidationResponse(valid=False, message="Invalid approval link.")

    details = {
        "approver_role": token.approver_role,
        "approver_email": token.approver_email,
    }
    application = await repository.get_by_id(db, application_id)
    if application and 0 <= token.chain_position < len(application.approval_chain):
        details["approver_name"] = application.approval_chain[token.chain_position]["name"]

    if token.used_at is not None:
        return TokenValidationResponse(
            valid=False,
            used=True,
            message="This approval link has already been used.",
            **details,
        )

    if datetime.now(UTC) > _as_utc(token.expires_at):
        return TokenValidationResponse(
            valid=False, message="This approval link has expired.", **details
        )

    if (
        application is None
        or is_terminal(application.status)
        or token.chain_position != application.chain_position
    ):
        return TokenValidationResponse(
            valid=False,
            message="This application is no longer awaiting this approver.",
            **details,
        )

    return TokenValidationResponse(valid=True, message="Approval link is valid.", **details)


# ============================================
# Read views
# ============================================


async def get_application_by_id(db: AsyncSession, application_id: str) -> Application:
    """
    Get an application by ID.

    Raises:
        ApplicationNotFoundError: If the application doesn't exist
    """
    application = await repository.get_by_id(db, application_id)

    if not application:
        raise ApplicationNotFoundError(application_id)

    return application


async def list_applications(
    db: AsyncSession,
    status: ApplicationStatus | None = None,
    college: str | None = None,
) -> list[Application]:
    return await repository.list_all(db, status=status, college=college)


async def search_applications(db: AsyncSession, query: str) -> list[Application]:
    """Case-insensitive substring search over faculty name and email."""
    query = query.strip()
    if not query:
        return []
    return await repository.search(db, query)


async def get_applications_for_applicant(db: AsyncSession, email: str) -> list[Application]:
    return await repository.get_by_faculty_email(db, normalize_email(email))


STATUS_LABELS: dict[ApplicationStatus, str] = {
    ApplicationStatus.SUBMITTED: "Submitted",
    ApplicationStatus.PENDING_DIVISION_CHAIR: "Pending Division Chair",
    ApplicationStatus.PENDING_SENIOR_ASSOCIATE_DEAN: "Pending Senior Associate Dean",
    ApplicationStatus.PENDING_DEAN: "Pending Dean",
    ApplicationStatus.APPROVED: "Approved",
    ApplicationStatus.DENIED: "Denied",
}

STATUS_DESCRIPTIONS: dict[ApplicationStatus, str] = {
    ApplicationStatus.SUBMITTED: (
        "Your application has been received and is awaiting the first approver's signature."
    ),
    ApplicationStatus.PENDING_DIVISION_CHAIR: (
        "Your application is awaiting the division chair's signature."
    ),
    ApplicationStatus.PENDING_SENIOR_ASSOCIATE_DEAN: (
        "Your application is awaiting the senior associate dean's signature."
    ),
    ApplicationStatus.PENDING_DEAN: "Your application is awaiting the dean's signature.",
    ApplicationStatus.APPROVED: "Your secondary appointment has been approved by all approvers.",
    ApplicationStatus.DENIED: (
        "Your application was not approved. Check your email for the approver's comments."
    ),
}


def _build_status_steps(application: Application) -> list[StatusStep]:
    """
    Build the progress steps for the applicant status page.

    1. Application Submitted - always completed
    2. One review step per approver - completed once that approver acted
    3. Decision - completed once the application is terminal
    """
    history = application.status_history

    steps: list[StatusStep] = [
        StatusStep(
            name="Application Submitted",
            completed=True,
            completed_at=application.submitted_at,
        )
    ]

    # history[0] is the submission; history[i + 1] is approver i's action
    for index, approver in enumerate(application.approval_chain):
        acted = len(history) > index + 1
        steps.append(
            StatusStep(
                name=f"{role_label(approver['role'])} Review",
                completed=acted,
                completed_at=history[index + 1].timestamp if acted else None,
            )
        )

    decided = is_terminal(application.status)
    steps.append(
        StatusStep(
            name="Decision",
            completed=decided,
            completed_at=application.updated_at if decided else None,
        )
    )

    return steps


async def get_application_status(
    db: AsyncSession,
    application_id: str,
    email: str,
) -> ApplicationStatusResponse:
    """
    Get the applicant-facing status of an application.

    Raises:
        ApplicationNotFoundError: If application doesn't exist
        InvalidEmailError: If email doesn't match the faculty member
    """
    logger.info(f"Getting status for application {application_id}")

    application = await repository.get_by_id(db, application_id)

    if not application:
        logger.warning(f"Application not found for status check: {application_id}")
        raise ApplicationNotFoundError(application_id)

    if normalize_email(email) != normalize_email(application.faculty_email):
        logger.warning(
            f"Unauthorized status check attempt for application {application_id}: "
            f"provided email does not match"
        )
        raise InvalidEmailError()

    current = application.current_approver
    return ApplicationStatusResponse(
        id=application.id,
        faculty_name=application.faculty_name,
        status=application.status,
        status_label=STATUS_LABELS.get(application.status, application.status.value),
        status_description=STATUS_DESCRIPTIONS.get(
            application.status,
            "Please contact the appointments office for more information.",
        ),
        current_approver=(
            ApproverOut(
                role=current["role"],
                role_label=role_label(current["role"]),
                name=current["name"],
                email=current["email"],
            )
            if current
            else None
        ),
        submitted_at=application.submitted_at,
        updated_at=application.updated_at,
        steps=_build_status_steps(application),
    )


async def get_cv_document(db: AsyncSession, application_id: str) -> tuple[Path, str, str]:
    """
    Locate the stored CV for an application.

    Returns:
        Tuple of (absolute path, original file name, mime type)

    Raises:
        ApplicationNotFoundError: If application doesn't exist
        CVNotFoundError: If the file is missing from storage
    """
    application = await get_application_by_id(db, application_id)

    try:
        path = resolve_document(application.cv_file_path)
    except DocumentNotFoundError as e:
        logger.error(f"CV file missing for application {application_id}")
        raise CVNotFoundError(application_id) from e

    return path, application.cv_file_name, application.cv_mime_type


async def get_metrics(db: AsyncSession) -> MetricsOut:
    """Aggregate workflow metrics for the admin dashboard."""
    stalled_before = datetime.now(UTC) - timedelta(days=settings.stalled_threshold_days)
    stats = await repository.get_metrics(
        db, stalled_before=stalled_before, recent_limit=RECENT_ACTIVITY_LIMIT
    )

    return MetricsOut(
        total_applications=stats["total_applications"],
        applications_by_status=stats["applications_by_status"],
        applications_by_college=stats["applications_by_college"],
        average_processing_time=stats["average_processing_time"],
        stalled_applications=stats["stalled_applications"],
        recent_activity=[RecentActivityItem(**item) for item in stats["recent_activity"]],
    )
