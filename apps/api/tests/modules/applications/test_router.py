"""
HTTP tests for the applications and metrics routers.

Service functions are patched; these tests cover request parsing,
response shapes, error mapping and rate limiting.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from appointments.core.config import settings
from appointments.core.database import get_db
from appointments.main import app
from appointments.modules.applications.models import ApplicationStatus
from appointments.modules.applications.schemas import (
    DecisionResponse,
    DecisionResult,
    FieldError,
    MetricsOut,
    SubmitResponse,
    SubmitResult,
    TokenValidationResponse,
)
from appointments.modules.applications.service import (
    ApplicationNotFoundError,
    ApplicationValidationError,
    ApproverAuthorizationError,
    InvalidApplicationStateError,
)

SERVICE = "appointments.modules.applications.service"


@pytest.fixture
def client(mock_db):
    async def override_get_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def form_data():
    return {
        "name": "Jane Faculty",
        "email": "jane.faculty@vanderbilt.edu",
        "title": "Associate Professor",
        "department": "Biomedical Engineering",
        "college": "School of Engineering",
        "appointmentType": "secondary",
        "effectiveDate": "2026-01-01",
        "rationale": "Joint research program.",
        "departmentChairName": "Dr. Chair",
        "departmentChairEmail": "chair@vanderbilt.edu",
    }


def _submit_response() -> SubmitResponse:
    return SubmitResponse(
        data=SubmitResult(application_id="APP-2026-0000ABCD"),
        message="Application submitted successfully.",
    )


class TestSubmit:
    def test_submit_maps_form_fields_and_cv(self, client, form_data):
        submit = AsyncMock(return_value=_submit_response())

        with patch(f"{SERVICE}.submit_application", submit):
            response = client.post(
                "/api/applications",
                data=form_data,
                files={"cvFile": ("cv.pdf", b"%PDF-1.4", "application/pdf")},
            )

        assert response.status_code == 201
        assert response.json()["data"] == {"applicationId": "APP-2026-0000ABCD"}

        _, fields, cv = submit.call_args.args
        assert fields["faculty_name"] == "Jane Faculty"
        assert fields["faculty_email"] == "jane.faculty@vanderbilt.edu"
        assert fields["faculty_college"] == "School of Engineering"
        assert fields["appointmentType"] == "secondary"
        assert cv.file_name == "cv.pdf"
        assert cv.content_type == "application/pdf"
        assert cv.content == b"%PDF-1.4"

    def test_submit_without_cv_passes_none(self, client, form_data):
        submit = AsyncMock(
            side_effect=ApplicationValidationError(
                [FieldError(field="cv", message="A CV document is required")]
            )
        )

        with patch(f"{SERVICE}.submit_application", submit):
            response = client.post("/api/applications", data=form_data)

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "VALIDATION_FAILED"
        assert detail["details"] == [{"field": "cv", "message": "A CV document is required"}]
        assert submit.call_args.args[2] is None

    def test_submit_unexpected_error(self, client, form_data):
        with patch(f"{SERVICE}.submit_application", AsyncMock(side_effect=RuntimeError("boom"))):
            response = client.post("/api/applications", data=form_data)

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "INTERNAL_ERROR"

    def test_submit_rate_limited(self, client, form_data):
        with (
            patch.object(settings, "submit_rate_limit", 2),
            patch(f"{SERVICE}.submit_application", AsyncMock(return_value=_submit_response())),
        ):
            codes = [
                client.post("/api/applications", data=form_data).status_code for _ in range(3)
            ]

        assert codes == [201, 201, 429]


class TestDecision:
    def _decision(self, status: ApplicationStatus) -> DecisionResponse:
        return DecisionResponse(
            data=DecisionResult(application_id="APP-2026-0000ABCD", new_status=status),
            message="ok",
        )

    def test_approve(self, client):
        approve = AsyncMock(return_value=self._decision(ApplicationStatus.PENDING_DEAN))

        with patch(f"{SERVICE}.approve_application", approve):
            response = client.post(
                "/api/applications/APP-2026-0000ABCD/approve",
                json={
                    "approverEmail": "chair@vanderbilt.edu",
                    "action": "approve",
                    "signature": "Dr. Chair",
                    "notes": "Supportive",
                },
            )

        assert response.status_code == 200
        assert response.json()["data"]["newStatus"] == "pending_dean"
        approve.assert_awaited_once()
        assert approve.call_args.args[1:] == (
            "APP-2026-0000ABCD",
            "chair@vanderbilt.edu",
            "Dr. Chair",
            "Supportive",
            None,
        )

    def test_deny(self, client):
        deny = AsyncMock(return_value=self._decision(ApplicationStatus.DENIED))

        with patch(f"{SERVICE}.deny_application", deny):
            response = client.post(
                "/api/applications/APP-2026-0000ABCD/approve",
                json={
                    "approverEmail": "chair@vanderbilt.edu",
                    "action": "deny",
                    "signature": "Dr. Chair",
                    "token": "abc",
                },
            )

        assert response.status_code == 200
        assert response.json()["data"]["newStatus"] == "denied"
        assert deny.call_args.args[-1] == "abc"

    @pytest.mark.parametrize(
        "error,status_code,code",
        [
            (ApplicationNotFoundError("APP-2026-0000ABCD"), 404, "APPLICATION_NOT_FOUND"),
            (ApproverAuthorizationError(), 403, "APPROVER_NOT_AUTHORIZED"),
            (
                InvalidApplicationStateError("Already decided.", "approved"),
                409,
                "INVALID_APPLICATION_STATE",
            ),
        ],
    )
    def test_error_mapping(self, client, error, status_code, code):
        with patch(f"{SERVICE}.approve_application", AsyncMock(side_effect=error)):
            response = client.post(
                "/api/applications/APP-2026-0000ABCD/approve",
                json={
                    "approverEmail": "chair@vanderbilt.edu",
                    "action": "approve",
                    "signature": "Dr. Chair",
                },
            )

        assert response.status_code == status_code
        assert response.json()["detail"]["error"] == code

    def test_missing_signature_rejected(self, client):
        response = client.post(
            "/api/applications/APP-2026-0000ABCD/approve",
            json={"approverEmail": "chair@vanderbilt.edu", "action": "approve"},
        )

        assert response.status_code == 422


class TestReadEndpoints:
    def test_get_application(self, client, two_step_application):
        with patch(
            f"{SERVICE}.get_application_by_id", AsyncMock(return_value=two_step_application)
        ):
            response = client.get(f"/api/applications/{two_step_application.id}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "submitted"
        assert data["facultyMember"]["email"] == "jane.faculty@vanderbilt.edu"
        assert data["currentApprover"]["email"] == "chair@vanderbilt.edu"
        assert len(data["statusHistory"]) == 1

    def test_get_application_not_found(self, client):
        with patch(
            f"{SERVICE}.get_application_by_id",
            AsyncMock(side_effect=ApplicationNotFoundError("APP-2026-MISSING0")),
        ):
            response = client.get("/api/applications/APP-2026-MISSING0")

        assert response.status_code == 404

    def test_list_with_filters(self, client, two_step_application):
        list_applications = AsyncMock(return_value=[two_step_application])

        with patch(f"{SERVICE}.list_applications", list_applications):
            response = client.get("/api/applications?status=submitted&college=Medicine")

        assert response.status_code == 200
        assert response.json()["total"] == 1
        assert list_applications.call_args.kwargs == {
            "status": ApplicationStatus.SUBMITTED,
            "college": "Medicine",
        }

    def test_search(self, client):
        search = AsyncMock(return_value=[])

        with patch(f"{SERVICE}.search_applications", search):
            response = client.get("/api/applications/search?q=jane")

        assert response.json() == {"data": [], "total": 0}
        assert search.call_args.args[1] == "jane"

    def test_validate_token(self, client):
        validate = AsyncMock(return_value=TokenValidationResponse(valid=True, message="ok"))

        with patch(f"{SERVICE}.validate_approval_token", validate):
            response = client.post(
                "/api/applications/validate-token",
                json={"applicationId": "APP-2026-0000ABCD", "token": "abc"},
            )

        assert response.json()["valid"] is True
        assert validate.call_args.args[1:] == ("APP-2026-0000ABCD", "abc")

    def test_download_cv_inline(self, client, tmp_path):
        cv = tmp_path / "stored.pdf"
        cv.write_bytes(b"%PDF-1.4")

        with patch(
            f"{SERVICE}.get_cv_document",
            AsyncMock(return_value=(cv, "cv.pdf", "application/pdf")),
        ):
            response = client.get("/api/applications/APP-2026-0000ABCD/cv?inline=true")

        assert response.status_code == 200
        assert response.content == b"%PDF-1.4"
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-disposition"].startswith("inline")

    def test_metrics(self, client):
        metrics = MetricsOut(
            total_applications=0,
            applications_by_status={status.value: 0 for status in ApplicationStatus},
            applications_by_college={},
            average_processing_time=None,
            stalled_applications=0,
            recent_activity=[],
        )

        with patch(f"{SERVICE}.get_metrics", AsyncMock(return_value=metrics)):
            response = client.get("/api/metrics")

        assert response.status_code == 200
        assert response.json()["data"]["totalApplications"] == 0


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
