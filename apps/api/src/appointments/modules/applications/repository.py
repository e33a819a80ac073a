"""
Applications Repository

Database operations for secondary appointment applications, their status
history, and approval tokens. All functions take the session explicitly
and hold no business rules beyond the status state machine guard.

Design Principles:
- All queries are parameterized (no SQL injection)
- Timezone-aware datetime handling (UTC)
- Listing and search share one stable order: submitted_at, then id
"""

from datetime import UTC, datetime

from sqlalchemy import and_, case, delete, extract, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from .helpers import append_history, build_approval_chain, institution_for_email
from .models import (
    TERMINAL_STATUSES,
    Application,
    ApplicationStatus,
    ApprovalToken,
    ApproverRole,
    StatusHistoryEntry,
)
from .schemas import ApplicationSubmission

_STABLE_ORDER = (Application.submitted_at.asc(), Application.id.asc())


async def create(
    db: AsyncSession,
    application_id: str,
    data: ApplicationSubmission,
    cv_file_path: str,
    cv_file_name: str,
    cv_mime_type: str,
    cv_file_size: int,
    submitted_at: datetime | None = None,
) -> Application:
    """Create an application with its initial SUBMITTED history entry."""
    now = submitted_at or datetime.now(UTC)

    new_application = Application(
        id=application_id,
        faculty_name=data.faculty_name,
        faculty_email=data.faculty_email.lower(),
        faculty_title=data.faculty_title,
        faculty_department=data.faculty_department,
        faculty_college=data.faculty_college,
        faculty_institution=institution_for_email(data.faculty_email),
        appointment_type=data.appointment_type,
        effective_date=data.effective_date,
        duration=data.duration,
        rationale=data.rationale,
        contributions_question=data.contributions_question,
        alignment_question=data.alignment_question,
        enhancement_question=data.enhancement_question,
        cv_file_path=cv_file_path,
        cv_file_name=cv_file_name,
        cv_mime_type=cv_mime_type,
        cv_file_size=cv_file_size,
        approval_chain=build_approval_chain(data.approvers()),
        chain_position=0,
        submitted_at=now,
        updated_at=now,
    )
    append_history(new_application, ApplicationStatus.SUBMITTED, now)

    db.add(new_application)
    await db.commit()
    await db.refresh(new_application)

    return new_application


async def get_by_id(db: AsyncSession, id: str) -> Application | None:
    """Get application by ID."""
    return await db.get(Application, id)


async def list_all(
    db: AsyncSession,
    status: ApplicationStatus | None = None,
    college: str | None = None,
) -> list[Application]:
    """Every application in stable order, optionally filtered."""
    query = select(Application)
    if status is not None:
        query = query.where(Application.status == status)
    if college:
        query = query.where(func.lower(Application.faculty_college) == college.lower())

    result = await db.execute(query.order_by(*_STABLE_ORDER))
    return list(result.scalars().all())


async def search(db: AsyncSession, text: str) -> list[Application]:
    """Case-insensitive substring match over faculty name and email."""
    query = (
        select(Application)
        .where(
            or_(
                Application.faculty_name.icontains(text, autoescape=True),
                Application.faculty_email.icontains(text, autoescape=True),
            )
        )
        .order_by(*_STABLE_ORDER)
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_by_faculty_email(db: AsyncSession, email: str) -> list[Application]:
    """All applications submitted by a faculty member."""
    result = await db.execute(
        select(Application)
        .where(func.lower(Application.faculty_email) == email.lower())
        .order_by(*_STABLE_ORDER)
    )
    return list(result.scalars().all())


# Valid status transitions - prevents invalid state changes.
# Pending states can only move forward through the chain or end the workflow.
VALID_STATUS_TRANSITIONS: dict[ApplicationStatus, set[ApplicationStatus]] = {
    ApplicationStatus.SUBMITTED: {
        ApplicationStatus.PENDING_DIVISION_CHAIR,
        ApplicationStatus.PENDING_SENIOR_ASSOCIATE_DEAN,
        ApplicationStatus.PENDING_DEAN,
        ApplicationStatus.APPROVED,
        ApplicationStatus.DENIED,
    },
    ApplicationStatus.PENDING_DIVISION_CHAIR: {
        ApplicationStatus.PENDING_SENIOR_ASSOCIATE_DEAN,
        ApplicationStatus.PENDING_DEAN,
        ApplicationStatus.APPROVED,
        ApplicationStatus.DENIED,
    },
    ApplicationStatus.PENDING_SENIOR_ASSOCIATE_DEAN: {
        ApplicationStatus.PENDING_DEAN,
        ApplicationStatus.APPROVED,
        ApplicationStatus.DENIED,
    },
    ApplicationStatus.PENDING_DEAN: {
        ApplicationStatus.APPROVED,
        ApplicationStatus.DENIED,
    },
    # Terminal states - no transitions allowed
    ApplicationStatus.APPROVED: set(),
    ApplicationStatus.DENIED: set(),
}


class InvalidStatusTransitionError(ValueError):
    """Raised when an invalid status transition is attempted."""

    def __init__(self, current_status: ApplicationStatus, new_status: ApplicationStatus):
        self.current_status = current_status
        self.new_status = new_status
        valid_transitions = VALID_STATUS_TRANSITIONS.get(current_status, set())
        super().__init__(
            f"Invalid status transition: {current_status.value} -> {new_status.value}. "
            f"Valid transitions: {sorted(s.value for s in valid_transitions)}"
        )


class ConcurrentUpdateError(RuntimeError):
    """Raised when the row changed underneath us (version mismatch)."""

    def __init__(self, application_id: str):
        self.application_id = application_id
        super().__init__(f"Application {application_id} was modified concurrently")


def validate_transition(current: ApplicationStatus, new: ApplicationStatus) -> None:
    if new not in VALID_STATUS_TRANSITIONS.get(current, set()):
        raise InvalidStatusTransitionError(current, new)


async def save_transition(
    db: AsyncSession,
    application: Application,
    previous_status: ApplicationStatus,
) -> Application:
    """
    Persist an in-memory transition (new status plus appended history entry).

    The UPDATE is guarded by the row version, so a concurrent writer that
    committed first makes this one fail instead of overwriting it.

    Raises:
        InvalidStatusTransitionError: If the state machine forbids the move
        ConcurrentUpdateError: If the row version changed since it was read
    """
    validate_transition(previous_status, application.status)

    try:
        await db.commit()
    except StaleDataError as e:
        await db.rollback()
        raise ConcurrentUpdateError(application.id) from e

    await db.refresh(application)
    return application


# ============================================
# Approval tokens
# ============================================


async def create_token(
    db: AsyncSession,
    application_id: str,
    token_hash: str,
    approver_email: str,
    approver_role: ApproverRole,
    chain_position: int,
    expires_at: datetime,
) -> ApprovalToken:
    """Create an approval token (the caller passes the hash, never the token)."""
    token = ApprovalToken(
        application_id=application_id,
        token_hash=token_hash,
        approver_email=approver_email,
        approver_role=approver_role,
        chain_position=chain_position,
        expires_at=expires_at,
    )
    db.add(token)
    await db.commit()
    await db.refresh(token)
    return token


async def get_token_by_hash(db: AsyncSession, token_hash: str) -> ApprovalToken | None:
    result = await db.execute(select(ApprovalToken).where(ApprovalToken.token_hash == token_hash))
    return result.scalar_one_or_none()


async def delete_expired_tokens(db: AsyncSession, now: datetime | None = None) -> int:
    """Delete tokens past their expiry. Returns the number removed."""
    result = await db.execute(
        delete(ApprovalToken).where(ApprovalToken.expires_at < (now or datetime.now(UTC)))
    )
    await db.commit()
    return result.rowcount or 0


# ============================================
# Reminders
# ============================================


async def get_stalled_applications(
    db: AsyncSession,
    stalled_before: datetime,
    reminded_before: datetime,
) -> list[Application]:
    """
    Non-terminal applications with no activity since ``stalled_before``
    and no reminder since ``reminded_before``.
    """
    result = await db.execute(
        select(Application)
        .where(
            Application.status.not_in(TERMINAL_STATUSES),
            Application.updated_at < stalled_before,
            or_(
                Application.last_reminder_at.is_(None),
                Application.last_reminder_at < reminded_before,
            ),
        )
        .order_by(*_STABLE_ORDER)
    )
    return list(result.scalars().all())


async def mark_reminder_sent(db: AsyncSession, id: str, when: datetime | None = None) -> None:
    """
    Record that the current approver was reminded.

    Core UPDATE so the row version is untouched: a reminder must not make
    an in-flight approver decision fail its version check.
    """
    await db.execute(
        update(Application)
        .where(Application.id == id)
        .values(last_reminder_at=when or datetime.now(UTC))
    )
    await db.commit()


# ============================================
# Metrics
# ============================================


async def get_metrics(
    db: AsyncSession,
    stalled_before: datetime,
    recent_limit: int = 10,
) -> dict:
    """
    Aggregate counts for the metrics view.

    Returns:
        Dict with total_applications, applications_by_status,
        applications_by_college, average_processing_time (days, terminal
        applications only, None when there are none), stalled_applications,
        recent_activity (latest history entries, newest first)
    """
    totals = (
        await db.execute(
            select(
                func.count(Application.id).label("total"),
                func.count(
                    case(
                        (
                            and_(
                                Application.status.not_in(TERMINAL_STATUSES),
                                Application.updated_at < stalled_before,
                            ),
                            1,
                        ),
                    )
                ).label("stalled"),
            )
        )
    ).one()

    by_status_rows = await db.execute(
        select(Application.status, func.count(Application.id)).group_by(Application.status)
    )
    by_status = {status.value: 0 for status in ApplicationStatus}
    for status, count in by_status_rows.all():
        by_status[ApplicationStatus(status).value] = count

    by_college_rows = await db.execute(
        select(Application.faculty_college, func.count(Application.id))
        .group_by(Application.faculty_college)
        .order_by(Application.faculty_college)
    )
    by_college = {college: count for college, count in by_college_rows.all()}

    avg_days = (
        await db.execute(
            select(
                func.avg(
                    extract("epoch", Application.updated_at - Application.submitted_at)
                    / 86400  # seconds to days
                )
            ).where(Application.status.in_(TERMINAL_STATUSES))
        )
    ).scalar()

    recent_rows = await db.execute(
        select(StatusHistoryEntry, Application.faculty_name)
        .join(Application, StatusHistoryEntry.application_id == Application.id)
        .order_by(StatusHistoryEntry.timestamp.desc(), StatusHistoryEntry.id.desc())
        .limit(recent_limit)
    )
    recent_activity = [
        {
            "application_id": entry.application_id,
            "faculty_name": faculty_name,
            "status": entry.status,
            "timestamp": entry.timestamp,
            "approver": entry.approver_name,
        }
        for entry, faculty_name in recent_rows.all()
    ]

    return {
        "total_applications": totals.total or 0,
        "applications_by_status": by_status,
        "applications_by_college": by_college,
        "average_processing_time": round(float(avg_days), 1) if avg_days is not None else None,
        "stalled_applications": totals.stalled or 0,
        "recent_activity": recent_activity,
    }
