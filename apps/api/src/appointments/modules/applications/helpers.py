"""
Applications Shared Helpers

Pure functions shared by service.py, jobs.py and the routers: id
generation, approval chain construction, and the workflow transition
itself. Nothing here touches the database.
"""

import enum
import uuid
from datetime import UTC, datetime

from appointments.modules.applications.models import (
    TERMINAL_STATUSES,
    Application,
    ApplicationStatus,
    ApproverRole,
    Institution,
    StatusHistoryEntry,
)

APPROVER_ROLE_ORDER: tuple[ApproverRole, ...] = (
    ApproverRole.DEPARTMENT_CHAIR,
    ApproverRole.DIVISION_CHAIR,
    ApproverRole.SENIOR_ASSOCIATE_DEAN,
    ApproverRole.DEAN,
)

ROLE_LABELS: dict[ApproverRole, str] = {
    ApproverRole.DEPARTMENT_CHAIR: "Department Chair",
    ApproverRole.DIVISION_CHAIR: "Division Chair",
    ApproverRole.SENIOR_ASSOCIATE_DEAN: "Senior Associate Dean",
    ApproverRole.DEAN: "Dean",
}

PENDING_STATUS_BY_ROLE: dict[ApproverRole, ApplicationStatus] = {
    ApproverRole.DIVISION_CHAIR: ApplicationStatus.PENDING_DIVISION_CHAIR,
    ApproverRole.SENIOR_ASSOCIATE_DEAN: ApplicationStatus.PENDING_SENIOR_ASSOCIATE_DEAN,
    ApproverRole.DEAN: ApplicationStatus.PENDING_DEAN,
}


class DecisionAction(str, enum.Enum):
    """Action an approver takes on the signature page."""

    APPROVE = "approve"
    DENY = "deny"


def generate_application_id(now: datetime | None = None) -> str:
    """Generate an id of the form APP-<YYYY>-<8 uppercase hex>."""
    year = (now or datetime.now(UTC)).year
    return f"APP-{year}-{uuid.uuid4().hex[:8].upper()}"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def email_domain(email: str) -> str:
    return email.rsplit("@", 1)[-1].lower() if "@" in email else ""


def institution_for_email(email: str) -> Institution:
    """Derive the faculty member's institution from their email domain."""
    return Institution.VUMC if email_domain(email) == "vumc.org" else Institution.VANDERBILT


def build_approval_chain(approvers: dict[ApproverRole, tuple[str, str]]) -> list[dict]:
    """
    Build the ordered approval chain.

    Args:
        approvers: role -> (name, email). Roles whose name or email is
            empty are left out.

    Returns:
        Chain entries in canonical role order
    """
    chain = []
    for role in APPROVER_ROLE_ORDER:
        name, email = approvers.get(role, ("", ""))
        if name and name.strip() and email and email.strip():
            chain.append(
                {"role": role.value, "name": name.strip(), "email": normalize_email(email)}
            )
    return chain


def role_label(role: str | ApproverRole) -> str:
    return ROLE_LABELS.get(ApproverRole(role), str(role))


def status_for_position(chain: list[dict], position: int) -> ApplicationStatus:
    """
    Status to show while ``position`` is the pending chain position.

    Position 0 is SUBMITTED; a position past the end means every approver
    signed.
    """
    if position <= 0:
        return ApplicationStatus.SUBMITTED
    if position >= len(chain):
        return ApplicationStatus.APPROVED
    return PENDING_STATUS_BY_ROLE[ApproverRole(chain[position]["role"])]


def is_terminal(status: ApplicationStatus) -> bool:
    return status in TERMINAL_STATUSES


def has_signed_before(chain: list[dict], email: str, position: int) -> bool:
    """
    Whether ``email`` held any chain position before ``position``.

    One person may hold several roles in the same chain.
    """
    target = normalize_email(email)
    return any(approver["email"] == target for approver in chain[:position])


def append_history(
    application: Application,
    status: ApplicationStatus,
    timestamp: datetime,
    approver: dict | None = None,
    signature: str | None = None,
    notes: str | None = None,
) -> StatusHistoryEntry:
    """Append a history entry and make it the application's current status."""
    entry = StatusHistoryEntry(
        sequence=len(application.status_history),
        status=status,
        timestamp=timestamp,
        approver_name=approver["name"] if approver else None,
        approver_email=approver["email"] if approver else None,
        approver_role=ApproverRole(approver["role"]) if approver else None,
        signature=signature,
        notes=notes,
    )
    application.status_history.append(entry)
    application.status = status
    application.updated_at = timestamp
    return entry


def apply_decision(
    application: Application,
    action: str,
    signature: str | None,
    notes: str | None,
    now: datetime | None = None,
) -> ApplicationStatus:
    """
    Apply the current approver's decision to an application in place.

    Callers must have already checked the application is not terminal and
    that the caller is the current approver.

    Returns:
        The new status
    """
    approver = application.current_approver
    if approver is None:
        raise ValueError(f"Application {application.id} has no pending approver")

    timestamp = now or datetime.now(UTC)

    if action == DecisionAction.DENY:
        new_status = ApplicationStatus.DENIED
    else:
        application.chain_position += 1
        new_status = status_for_position(application.approval_chain, application.chain_position)

    append_history(application, new_status, timestamp, approver, signature, notes)
    return new_status
