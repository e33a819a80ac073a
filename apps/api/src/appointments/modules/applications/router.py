"""
Applications Router

API endpoints for the secondary appointment workflow.

Endpoints:
- POST /applications - Submit a new application (multipart, with CV)
- GET /applications - List applications
- GET /applications/search - Search by faculty name or email
- GET /applications/my-applications - Applications for one faculty member
- POST /applications/validate-token - Check an approver's signature link
- GET /applications/{id} - Application detail
- GET /applications/{id}/status - Applicant status page
- GET /applications/{id}/cv - Download or preview the CV
- POST /applications/{id}/approve - Approver decision (approve or deny)

Security:
- Rate limiting on submission and decision endpoints
- Approver identity checked against the pending chain position
- Optional single-use approval tokens bound to that position
- Input validation via Pydantic schemas
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from appointments.core.config import settings
from appointments.core.database import get_db
from appointments.core.rate_limit import rate_limiter
from appointments.modules.applications import service
from appointments.modules.applications.helpers import DecisionAction
from appointments.modules.applications.models import ApplicationStatus
from appointments.modules.applications.schemas import (
    ApplicationListResponse,
    ApplicationOut,
    ApplicationResponse,
    ApplicationStatusResponse,
    CVUpload,
    DecisionRequest,
    DecisionResponse,
    SubmitResponse,
    TokenValidationRequest,
    TokenValidationResponse,
)
from appointments.modules.applications.service import (
    ApplicationServiceError,
    ApplicationValidationError,
)

logger = logging.getLogger(__name__)

router = APIRouter()

CV_FIELD_NAMES = ("cvFile", "cv")

# Short form names used by the web form for the faculty member section
FORM_FIELD_ALIASES = {
    "name": "faculty_name",
    "email": "faculty_email",
    "title": "faculty_title",
    "department": "faculty_department",
    "college": "faculty_college",
}


def _handle_service_error(e: ApplicationServiceError) -> None:
    """Convert service errors to HTTPExceptions."""
    detail: dict = {
        "error": e.error_code,
        "message": e.message,
    }
    if isinstance(e, ApplicationValidationError):
        detail["details"] = [{"field": err.field, "message": err.message} for err in e.errors]
    raise HTTPException(status_code=e.status_code, detail=detail) from e


def _internal_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred. Please try again later.",
        },
    )


def _list_response(applications) -> ApplicationListResponse:
    return ApplicationListResponse(
        data=[ApplicationOut.from_model(a) for a in applications],
        total=len(applications),
    )


@router.post(
    "",
    response_model=SubmitResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Secondary Appointment Application",
    description="""
Submit a new secondary appointment application as multipart form data.

Faculty fields (`name`, `email`, `title`, `department`, `college`), appointment
fields (`appointmentType`, `effectiveDate`, `duration`, `rationale` and the
optional narrative questions), approver name/email pairs
(`departmentChairName`/`departmentChairEmail`, `divisionChair...`,
`seniorAssociateDean...`, `dean...`) and a `cvFile` upload (PDF, DOC or DOCX).

After submission the faculty member receives a confirmation email and the
first approver receives a signature link.
""",
    responses={
        400: {"description": "Validation failed; `detail.details` lists each field error"},
        429: {"description": "Too many submissions from this client"},
    },
    dependencies=[Depends(rate_limiter(lambda: settings.submit_rate_limit))],
)
async def submit_application(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> SubmitResponse:
    """
    Submit a new application.

    The whole form goes through one validation stage in the service, so
    missing fields and a missing CV are reported together.
    """
    form = await request.form()

    fields: dict[str, str] = {}
    cv: CVUpload | None = None
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            if key in CV_FIELD_NAMES and cv is None:
                cv = CVUpload(
                    file_name=value.filename or "",
                    content_type=value.content_type or "",
                    content=await value.read(),
                )
            continue
        fields[FORM_FIELD_ALIASES.get(key, key)] = value

    try:
        response = await service.submit_application(db, fields, cv)
        logger.info(f"Application submitted successfully: id={response.data.application_id}")
        return response

    except ApplicationServiceError as e:
        logger.warning(f"Application submission rejected: {e.message}")
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error submitting application: {e}")
        raise _internal_error() from e


@router.get(
    "",
    response_model=ApplicationListResponse,
    summary="List Applications",
)
async def list_applications(
    status_filter: ApplicationStatus | None = Query(None, alias="status"),
    college: str | None = Query(None, max_length=200),
    db: AsyncSession = Depends(get_db),
) -> ApplicationListResponse:
    """List every application, oldest submission first."""
    applications = await service.list_applications(db, status=status_filter, college=college)
    return _list_response(applications)


@router.get(
    "/search",
    response_model=ApplicationListResponse,
    summary="Search Applications",
    description="Case-insensitive substring match over faculty name and email.",
)
async def search_applications(
    q: str = Query("", max_length=200),
    db: AsyncSession = Depends(get_db),
) -> ApplicationListResponse:
    applications = await service.search_applications(db, q)
    return _list_response(applications)


@router.get(
    "/my-applications",
    response_model=ApplicationListResponse,
    summary="Applications for a Faculty Member",
)
async def my_applications(
    email: str = Query(..., min_length=3, max_length=255),
    db: AsyncSession = Depends(get_db),
) -> ApplicationListResponse:
    applications = await service.get_applications_for_applicant(db, email)
    return _list_response(applications)


@router.post(
    "/validate-token",
    response_model=TokenValidationResponse,
    summary="Validate Approval Link",
    description="""
Used by the signature page before showing the approve/deny form.
Returns `valid: false` (never an error) for unknown, used or expired links.
""",
)
async def validate_token(
    data: TokenValidationRequest,
    db: AsyncSession = Depends(get_db),
) -> TokenValidationResponse:
    return await service.validate_approval_token(db, data.application_id, data.token)


@router.get(
    "/{application_id}",
    response_model=ApplicationResponse,
    summary="Get Application",
    responses={404: {"description": "Application not found"}},
)
async def get_application(
    application_id: str,
    db: AsyncSession = Depends(get_db),
) -> ApplicationResponse:
    try:
        application = await service.get_application_by_id(db, application_id)
        return ApplicationResponse(data=ApplicationOut.from_model(application))
    except ApplicationServiceError as e:
        _handle_service_error(e)


@router.get(
    "/{application_id}/status",
    response_model=ApplicationStatusResponse,
    summary="Get Application Status",
    description="""
Applicant-facing progress view. The email must match the faculty member's
email on the application.
""",
    responses={
        403: {"description": "Email does not match the application"},
        404: {"description": "Application not found"},
    },
)
async def get_application_status(
    application_id: str,
    email: str = Query(..., min_length=3, max_length=255),
    db: AsyncSession = Depends(get_db),
) -> ApplicationStatusResponse:
    try:
        return await service.get_application_status(db, application_id, email)
    except ApplicationServiceError as e:
        _handle_service_error(e)


@router.get(
    "/{application_id}/cv",
    summary="Download CV",
    response_class=FileResponse,
    responses={404: {"description": "Application or CV not found"}},
)
async def download_cv(
    application_id: str,
    inline: bool = Query(False, description="Display in the browser instead of downloading"),
    db: AsyncSession = Depends(get_db),
) -> FileResponse:
    try:
        path, file_name, mime_type = await service.get_cv_document(db, application_id)
    except ApplicationServiceError as e:
        _handle_service_error(e)

    return FileResponse(
        path,
        media_type=mime_type,
        filename=file_name,
        content_disposition_type="inline" if inline else "attachment",
    )


@router.post(
    "/{application_id}/approve",
    response_model=DecisionResponse,
    summary="Approve or Deny Application",
    description="""
Record the current approver's decision.

`action` is `approve` (advance to the next approver, or finish as `approved`)
or `deny` (finish as `denied`). Only the approver whose turn it is may act;
a repeated click after the decision was recorded returns 409.
""",
    responses={
        403: {"description": "Caller is not the current approver, or the link is invalid"},
        404: {"description": "Application not found"},
        409: {"description": "Application already decided, or decision already recorded"},
        429: {"description": "Too many requests"},
    },
    dependencies=[Depends(rate_limiter(lambda: settings.approve_rate_limit))],
)
async def decide_application(
    application_id: str,
    data: DecisionRequest,
    db: AsyncSession = Depends(get_db),
) -> DecisionResponse:
    try:
        if data.action == DecisionAction.APPROVE:
            return await service.approve_application(
                db, application_id, data.approver_email, data.signature, data.notes, data.token
            )
        return await service.deny_application(
            db, application_id, data.approver_email, data.signature, data.notes, data.token
        )

    except ApplicationServiceError as e:
        logger.warning(f"Decision on {application_id} rejected: {e.error_code}")
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error recording decision on {application_id}: {e}")
        raise _internal_error() from e
