"""
HTTP tests for the colleges router.

Service functions are patched; these tests cover response shapes,
request validation and error mapping.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from appointments.core.database import get_db
from appointments.main import app
from appointments.modules.colleges.service import (
    CollegeHasNoDepartmentsError,
    CollegeNotFoundError,
    DepartmentCollegeMismatchError,
    DuplicateCollegeError,
)

SERVICE = "appointments.modules.colleges.service"


@pytest.fixture
def client(mock_db):
    async def override_get_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestColleges:
    def test_list_includes_departments(self, client, engineering, college_factory):
        music = college_factory(
            name="Blair School of Music", college_id="college-2", has_departments=False
        )

        with patch(f"{SERVICE}.list_colleges", AsyncMock(return_value=[music, engineering])):
            response = client.get("/api/colleges")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Found 2 colleges"
        assert body["data"][0]["hasDepartments"] is False
        assert body["data"][0]["departments"] is None
        assert body["data"][1]["dean"] == {
            "name": "Dr. Dean",
            "email": "dean@vanderbilt.edu",
            "title": "Dean",
        }
        assert body["data"][1]["departments"][0]["chair"]["title"] == "Department Chair"
        assert body["data"][1]["departments"][0]["divisionChair"] is None

    def test_get_not_found(self, client):
        with patch(
            f"{SERVICE}.get_college", AsyncMock(side_effect=CollegeNotFoundError("missing"))
        ):
            response = client.get("/api/colleges/missing")

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "COLLEGE_NOT_FOUND"

    def test_create(self, client, engineering, college_body):
        create = AsyncMock(return_value=engineering)

        with patch(f"{SERVICE}.create_college", create):
            response = client.post("/api/colleges", json=college_body)

        assert response.status_code == 201
        assert response.json()["data"]["name"] == "School of Engineering"
        assert create.call_args.args[1].dean_email == "dean@vanderbilt.edu"

    def test_create_duplicate(self, client, college_body):
        with patch(
            f"{SERVICE}.create_college",
            AsyncMock(side_effect=DuplicateCollegeError("School of Engineering")),
        ):
            response = client.post("/api/colleges", json=college_body)

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "DUPLICATE_COLLEGE"

    def test_create_requires_dean_email(self, client, college_body):
        del college_body["deanEmail"]

        response = client.post("/api/colleges", json=college_body)

        assert response.status_code == 422

    def test_delete(self, client):
        delete = AsyncMock()

        with patch(f"{SERVICE}.delete_college", delete):
            response = client.delete("/api/colleges/college-1")

        assert response.json()["data"] == {"deleted": True}
        assert delete.call_args.args[1] == "college-1"


class TestDepartments:
    def test_list(self, client, department_factory):
        departments = [department_factory()]

        with patch(f"{SERVICE}.list_departments", AsyncMock(return_value=departments)):
            response = client.get("/api/colleges/college-1/departments")

        assert response.status_code == 200
        assert response.json()["message"] == "Found 1 departments"
        assert response.json()["data"][0]["name"] == "Biomedical Engineering"

    def test_list_for_unknown_college(self, client):
        with patch(
            f"{SERVICE}.list_departments",
            AsyncMock(side_effect=CollegeNotFoundError("missing")),
        ):
            response = client.get("/api/colleges/missing/departments")

        assert response.status_code == 404

    def test_add_to_college_without_departments(self, client, department_body):
        with patch(
            f"{SERVICE}.add_department",
            AsyncMock(side_effect=CollegeHasNoDepartmentsError("Blair School of Music")),
        ):
            response = client.post("/api/colleges/college-2/departments", json=department_body)

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "COLLEGE_HAS_NO_DEPARTMENTS"

    def test_update_through_wrong_college(self, client, department_body):
        with patch(
            f"{SERVICE}.update_department",
            AsyncMock(side_effect=DepartmentCollegeMismatchError()),
        ):
            response = client.put(
                "/api/colleges/college-2/departments/dept-1", json=department_body
            )

        assert response.status_code == 400

    def test_delete(self, client):
        delete = AsyncMock()

        with patch(f"{SERVICE}.delete_department", delete):
            response = client.delete("/api/colleges/college-1/departments/dept-1")

        assert response.status_code == 200
        assert delete.call_args.args[1:] == ("college-1", "dept-1")
