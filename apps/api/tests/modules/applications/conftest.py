"""
Fixtures for secondary appointment application tests.
"""

from datetime import UTC, date, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from appointments.core.rate_limit import reset_memory_store
from appointments.modules.applications.helpers import append_history
from appointments.modules.applications.models import (
    Application,
    ApplicationStatus,
    AppointmentType,
    ApprovalToken,
    ApproverRole,
    Institution,
)
from appointments.modules.applications.schemas import CVUpload

PDF_BYTES = b"%PDF-1.4\n%test cv\n"

CHAIR = {"role": "department_chair", "name": "Dr. Chair", "email": "chair@vanderbilt.edu"}
DIVISION = {"role": "division_chair", "name": "Dr. Division", "email": "division@vumc.org"}
SAD = {"role": "senior_associate_dean", "name": "Dr. Associate", "email": "sad@vanderbilt.edu"}
DEAN = {"role": "dean", "name": "Dr. Dean", "email": "dean@vanderbilt.edu"}


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.refresh = AsyncMock()
    db.rollback = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture(autouse=True)
def clear_rate_limits():
    reset_memory_store()
    yield
    reset_memory_store()


@pytest.fixture
def submission_fields():
    """Raw form fields for a valid two-approver submission."""
    return {
        "faculty_name": "Jane Faculty",
        "faculty_email": "Jane.Faculty@vanderbilt.edu",
        "faculty_title": "Associate Professor",
        "faculty_department": "Biomedical Engineering",
        "faculty_college": "School of Engineering",
        "appointmentType": "secondary",
        "effectiveDate": "2026-01-01",
        "duration": "3 years",
        "rationale": "Joint research program in imaging.",
        "departmentChairName": CHAIR["name"],
        "departmentChairEmail": CHAIR["email"],
        "deanName": DEAN["name"],
        "deanEmail": DEAN["email"],
    }


@pytest.fixture
def cv_upload():
    return CVUpload(file_name="cv.pdf", content_type="application/pdf", content=PDF_BYTES)


def build_application(
    chain: list[dict] | None = None,
    application_id: str = "APP-2026-0000ABCD",
    submitted_at: datetime | None = None,
) -> Application:
    """Build a freshly submitted application with its SUBMITTED history entry."""
    now = submitted_at or datetime(2026, 1, 5, 9, 0, tzinfo=UTC)
    application = Application(
        id=application_id,
        faculty_name="Jane Faculty",
        faculty_email="jane.faculty@vanderbilt.edu",
        faculty_title="Associate Professor",
        faculty_department="Biomedical Engineering",
        faculty_college="School of Engineering",
        faculty_institution=Institution.VANDERBILT,
        appointment_type=AppointmentType.SECONDARY,
        effective_date=date(2026, 1, 1),
        duration="3 years",
        rationale="Joint research program in imaging.",
        cv_file_path=f"{application_id}-cv.pdf",
        cv_file_name="cv.pdf",
        cv_mime_type="application/pdf",
        cv_file_size=len(PDF_BYTES),
        approval_chain=list(chain if chain is not None else [CHAIR, DEAN]),
        chain_position=0,
        status=ApplicationStatus.SUBMITTED,
        submitted_at=now,
        updated_at=now,
        version=1,
    )
    append_history(application, ApplicationStatus.SUBMITTED, now)
    return application


@pytest.fixture
def application_factory():
    return build_application


@pytest.fixture
def two_step_application():
    """Department chair then dean."""
    return build_application([CHAIR, DEAN])


@pytest.fixture
def four_step_application():
    return build_application([CHAIR, DIVISION, SAD, DEAN])


def build_token(
    application: Application,
    token_hash: str,
    position: int = 0,
    expires_in: timedelta = timedelta(days=30),
    used_at: datetime | None = None,
) -> ApprovalToken:
    approver = application.approval_chain[position]
    return ApprovalToken(
        id=1,
        application_id=application.id,
        token_hash=token_hash,
        approver_email=approver["email"],
        approver_role=ApproverRole(approver["role"]),
        chain_position=position,
        expires_at=datetime.now(UTC) + expires_in,
        used_at=used_at,
    )


@pytest.fixture
def token_factory():
    return build_token
