"""
Applications Schemas

Pydantic schemas for request validation and response serialization.
JSON keys are camelCase on the wire; Python attributes stay snake_case.
Timestamps serialize as ISO-8601 strings.
"""

from dataclasses import dataclass, field
from datetime import date, datetime

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from appointments.core.config import settings
from appointments.modules.applications.helpers import (
    DecisionAction,
    email_domain,
    role_label,
)
from appointments.modules.applications.models import (
    Application,
    ApplicationStatus,
    AppointmentType,
    ApproverRole,
    Institution,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ============================================
# Submission
# ============================================


class ApplicationSubmission(CamelModel):
    """
    Validated submission payload.

    Built from the multipart form fields; the CV file is validated
    separately since it is not part of the JSON-able payload.
    """

    faculty_name: str = Field(..., min_length=1, max_length=200)
    faculty_email: EmailStr
    faculty_title: str = Field(..., min_length=1, max_length=200)
    faculty_department: str | None = Field(None, max_length=200)
    faculty_college: str = Field(..., min_length=1, max_length=200)

    appointment_type: AppointmentType
    effective_date: date
    duration: str | None = Field(None, max_length=100)
    rationale: str = Field(..., min_length=1, max_length=10000)
    contributions_question: str | None = Field(None, max_length=10000)
    alignment_question: str | None = Field(None, max_length=10000)
    enhancement_question: str | None = Field(None, max_length=10000)

    department_chair_name: str | None = Field(None, max_length=200)
    department_chair_email: EmailStr | None = None
    division_chair_name: str | None = Field(None, max_length=200)
    division_chair_email: EmailStr | None = None
    senior_associate_dean_name: str | None = Field(None, max_length=200)
    senior_associate_dean_email: EmailStr | None = None
    dean_name: str | None = Field(None, max_length=200)
    dean_email: EmailStr | None = None

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        """Form fields arrive as strings; treat blank ones as missing."""
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    def approvers(self) -> dict[ApproverRole, tuple[str, str]]:
        return {
            ApproverRole.DEPARTMENT_CHAIR: (
                self.department_chair_name or "",
                self.department_chair_email or "",
            ),
            ApproverRole.DIVISION_CHAIR: (
                self.division_chair_name or "",
                self.division_chair_email or "",
            ),
            ApproverRole.SENIOR_ASSOCIATE_DEAN: (
                self.senior_associate_dean_name or "",
                self.senior_associate_dean_email or "",
            ),
            ApproverRole.DEAN: (self.dean_name or "", self.dean_email or ""),
        }

    @model_validator(mode="after")
    def validate_submission(self) -> "ApplicationSubmission":
        """Validate institutional email domains and the approver list."""
        allowed = settings.allowed_email_domains_list

        if allowed and email_domain(self.faculty_email) not in allowed:
            raise ValueError(
                f"faculty_email must be an institutional address ({', '.join(allowed)})"
            )

        complete = 0
        for role, (name, email) in self.approvers().items():
            if bool(name) != bool(email):
                raise ValueError(
                    f"{role.value}_name and {role.value}_email must be provided together"
                )
            if email:
                if allowed and email_domain(email) not in allowed:
                    raise ValueError(
                        f"{role.value}_email must be an institutional address "
                        f"({', '.join(allowed)})"
                    )
                complete += 1

        if complete == 0:
            raise ValueError("At least one approver (name and email) is required")

        return self


@dataclass
class CVUpload:
    """An uploaded CV file, read fully into memory."""

    file_name: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class FieldError:
    field: str
    message: str


@dataclass
class SubmissionValidationResult:
    """Outcome of the submission validation stage: a payload or its errors."""

    submission: ApplicationSubmission | None = None
    cv: CVUpload | None = None
    errors: list[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors and self.submission is not None and self.cv is not None


class SubmitResult(CamelModel):
    application_id: str


class SubmitResponse(CamelModel):
    """Response for POST /applications."""

    data: SubmitResult
    message: str
    warnings: list[str] = Field(default_factory=list)


# ============================================
# Application read models
# ============================================


class ApproverOut(CamelModel):
    role: ApproverRole
    role_label: str
    name: str
    email: str


class FacultyMemberOut(CamelModel):
    name: str
    email: str
    title: str
    department: str | None = None
    college: str
    institution: Institution


class CVFileOut(CamelModel):
    file_name: str
    mime_type: str
    size: int


class StatusHistoryEntryOut(CamelModel):
    status: ApplicationStatus
    timestamp: datetime
    approver: str | None = None
    approver_email: str | None = None
    approver_role: ApproverRole | None = None
    signature: str | None = None
    notes: str | None = None


class ApplicationOut(CamelModel):
    """Full application record as returned by the API."""

    id: str
    faculty_member: FacultyMemberOut
    appointment_type: AppointmentType
    effective_date: date
    duration: str | None = None
    rationale: str
    contributions_question: str | None = None
    alignment_question: str | None = None
    enhancement_question: str | None = None
    approval_chain: list[ApproverOut]
    chain_position: int
    current_approver: ApproverOut | None = None
    status: ApplicationStatus
    status_history: list[StatusHistoryEntryOut]
    submitted_at: datetime
    updated_at: datetime
    cv_file: CVFileOut

    @classmethod
    def from_model(cls, application: Application) -> "ApplicationOut":
        current = application.current_approver
        return cls(
            id=application.id,
            faculty_member=FacultyMemberOut(
                name=application.faculty_name,
                email=application.faculty_email,
                title=application.faculty_title,
                department=application.faculty_department,
                college=application.faculty_college,
                institution=application.faculty_institution,
            ),
            appointment_type=application.appointment_type,
            effective_date=application.effective_date,
            duration=application.duration,
            rationale=application.rationale,
            contributions_question=application.contributions_question,
            alignment_question=application.alignment_question,
            enhancement_question=application.enhancement_question,
            approval_chain=[_approver_out(a) for a in application.approval_chain],
            chain_position=application.chain_position,
            current_approver=_approver_out(current) if current else None,
            status=application.status,
            status_history=[
                StatusHistoryEntryOut(
                    status=entry.status,
                    timestamp=entry.timestamp,
                    approver=entry.approver_name,
                    approver_email=entry.approver_email,
                    approver_role=entry.approver_role,
                    signature=entry.signature,
                    notes=entry.notes,
                )
                for entry in application.status_history
            ],
            submitted_at=application.submitted_at,
            updated_at=application.updated_at,
            cv_file=CVFileOut(
                file_name=application.cv_file_name,
                mime_type=application.cv_mime_type,
                size=application.cv_file_size,
            ),
        )


def _approver_out(approver: dict) -> ApproverOut:
    return ApproverOut(
        role=approver["role"],
        role_label=role_label(approver["role"]),
        name=approver["name"],
        email=approver["email"],
    )


class ApplicationResponse(CamelModel):
    data: ApplicationOut


class ApplicationListResponse(CamelModel):
    data: list[ApplicationOut]
    total: int


# ============================================
# Approver decisions
# ============================================


class DecisionRequest(CamelModel):
    """Request body for POST /applications/{id}/approve."""

    approver_email: EmailStr
    action: DecisionAction
    signature: str = Field(..., min_length=1, max_length=200)
    notes: str | None = Field(None, max_length=5000)
    token: str | None = Field(None, max_length=200)


class DecisionResult(CamelModel):
    application_id: str
    new_status: ApplicationStatus


class DecisionResponse(CamelModel):
    data: DecisionResult
    message: str
    warnings: list[str] = Field(default_factory=list)


class TokenValidationRequest(CamelModel):
    application_id: str = Field(..., min_length=1, max_length=32)
    token: str = Field(..., min_length=1, max_length=200)


class TokenValidationResponse(CamelModel):
    valid: bool
    used: bool = False
    message: str
    approver_role: ApproverRole | None = None
    approver_name: str | None = None
    approver_email: str | None = None


# ============================================
# Applicant status page
# ============================================


class StatusStep(CamelModel):
    """A single step in the application progress."""

    name: str
    completed: bool
    completed_at: datetime | None = None


class ApplicationStatusResponse(CamelModel):
    """Applicant-facing status view."""

    id: str
    faculty_name: str
    status: ApplicationStatus
    status_label: str
    status_description: str
    current_approver: ApproverOut | None = None
    submitted_at: datetime
    updated_at: datetime
    steps: list[StatusStep]


# ============================================
# Metrics
# ============================================


class RecentActivityItem(CamelModel):
    application_id: str
    faculty_name: str
    status: ApplicationStatus
    timestamp: datetime
    approver: str | None = None


class MetricsOut(CamelModel):
    total_applications: int
    applications_by_status: dict[str, int]
    applications_by_college: dict[str, int]
    average_processing_time: float | None = None
    stalled_applications: int
    recent_activity: list[RecentActivityItem]


class MetricsResponse(CamelModel):
    data: MetricsOut
