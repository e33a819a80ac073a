"""
Secondary Appointment Application Models

Database models for faculty secondary appointment applications, their
append-only status history, and per-approver action tokens.
"""

import enum
from datetime import date, datetime

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from appointments.core.database import Base


class ApproverRole(str, enum.Enum):
    """Approver roles, declared in canonical chain order."""

    DEPARTMENT_CHAIR = "department_chair"
    DIVISION_CHAIR = "division_chair"
    SENIOR_ASSOCIATE_DEAN = "senior_associate_dean"
    DEAN = "dean"


class ApplicationStatus(str, enum.Enum):
    """
    Workflow state of an application.

    SUBMITTED means the first approver in the chain is pending. Each later
    chain position has its own PENDING_<ROLE> state.
    """

    SUBMITTED = "submitted"
    PENDING_DIVISION_CHAIR = "pending_division_chair"
    PENDING_SENIOR_ASSOCIATE_DEAN = "pending_senior_associate_dean"
    PENDING_DEAN = "pending_dean"
    APPROVED = "approved"
    DENIED = "denied"


TERMINAL_STATUSES = frozenset({ApplicationStatus.APPROVED, ApplicationStatus.DENIED})


class AppointmentType(str, enum.Enum):
    INITIAL = "initial"
    SECONDARY = "secondary"


class Institution(str, enum.Enum):
    VANDERBILT = "vanderbilt"
    VUMC = "vumc"


class Application(Base):
    """
    Secondary appointment application.

    Faculty, appointment, and approval chain columns are written once at
    submission. Only ``status``, ``chain_position``, ``updated_at``,
    ``last_reminder_at`` and the history change afterwards.
    """

    __tablename__ = "applications"

    # APP-<YYYY>-<8 hex>
    id: Mapped[str] = mapped_column(String(32), primary_key=True)

    # Faculty member
    faculty_name: Mapped[str] = mapped_column(String(200), nullable=False)
    faculty_email: Mapped[str] = mapped_column(String(255), nullable=False)
    faculty_title: Mapped[str] = mapped_column(String(200), nullable=False)
    faculty_department: Mapped[str | None] = mapped_column(String(200), nullable=True)
    faculty_college: Mapped[str] = mapped_column(String(200), nullable=False)
    faculty_institution: Mapped[Institution] = mapped_column(
        Enum(Institution, name="institution"), nullable=False
    )

    # Appointment
    appointment_type: Mapped[AppointmentType] = mapped_column(
        Enum(AppointmentType, name="appointment_type"), nullable=False
    )
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    duration: Mapped[str | None] = mapped_column(String(100), nullable=True)
    rationale: Mapped[str] = mapped_column(Text, nullable=False)
    contributions_question: Mapped[str | None] = mapped_column(Text, nullable=True)
    alignment_question: Mapped[str | None] = mapped_column(Text, nullable=True)
    enhancement_question: Mapped[str | None] = mapped_column(Text, nullable=True)

    # CV document (bytes live in the upload directory)
    cv_file_path: Mapped[str] = mapped_column(String(500), nullable=False)
    cv_file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    cv_mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    cv_file_size: Mapped[int] = mapped_column(Integer, nullable=False)

    # Approval chain: [{"role": ..., "name": ..., "email": ...}, ...]
    approval_chain: Mapped[list] = mapped_column(JSON, nullable=False)
    chain_position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Status tracking
    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(ApplicationStatus, name="application_status"),
        nullable=False,
        default=ApplicationStatus.SUBMITTED,
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_reminder_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Row version for compare-and-swap updates
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    status_history: Mapped[list["StatusHistoryEntry"]] = relationship(
        "StatusHistoryEntry",
        back_populates="application",
        cascade="all, delete-orphan",
        order_by="StatusHistoryEntry.sequence",
        lazy="selectin",
    )
    approval_tokens: Mapped[list["ApprovalToken"]] = relationship(
        "ApprovalToken", back_populates="application", cascade="all, delete-orphan"
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_applications_status", "status"),
        Index("ix_applications_faculty_email", "faculty_email"),
        Index("ix_applications_submitted_at", "submitted_at"),
    )

    @property
    def current_approver(self) -> dict | None:
        """The chain entry whose action is pending, or None once terminal."""
        if self.status in TERMINAL_STATUSES:
            return None
        if 0 <= self.chain_position < len(self.approval_chain):
            return self.approval_chain[self.chain_position]
        return None


class StatusHistoryEntry(Base):
    """One recorded workflow transition. Rows are only ever inserted."""

    __tablename__ = "status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    application_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
    )
    # 0-based position within the application's history
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(ApplicationStatus, name="application_status"), nullable=False
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    approver_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    approver_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approver_role: Mapped[ApproverRole | None] = mapped_column(
        Enum(ApproverRole, name="approver_role"), nullable=True
    )
    signature: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    application: Mapped["Application"] = relationship(
        "Application", back_populates="status_history"
    )

    __table_args__ = (
        Index("ix_status_history_application_sequence", "application_id", "sequence", unique=True),
        Index("ix_status_history_timestamp", "timestamp"),
    )


class ApprovalToken(Base):
    """
    Action token mailed to an approver in the signature link.

    Only the SHA-256 hash of the token is stored. A token is bound to one
    chain position, so it cannot be replayed after the cursor moves.
    """

    __tablename__ = "approval_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    application_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
    )
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    approver_email: Mapped[str] = mapped_column(String(255), nullable=False)
    approver_role: Mapped[ApproverRole] = mapped_column(
        Enum(ApproverRole, name="approver_role"), nullable=False
    )
    chain_position: Mapped[int] = mapped_column(Integer, nullable=False)

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    application: Mapped["Application"] = relationship(
        "Application", back_populates="approval_tokens"
    )

    __table_args__ = (
        Index("ix_approval_tokens_application_position", "application_id", "chain_position"),
    )
