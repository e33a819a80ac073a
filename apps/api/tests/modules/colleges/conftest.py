"""
Fixtures for college catalog tests.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from appointments.modules.colleges.models import College, Department


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.refresh = AsyncMock()
    db.rollback = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.delete = AsyncMock()
    db.add = MagicMock()
    return db


def build_department(
    name: str = "Biomedical Engineering",
    department_id: str = "dept-1",
    college_id: str = "college-1",
) -> Department:
    return Department(
        id=department_id,
        college_id=college_id,
        name=name,
        chair_name="Dr. Chair",
        chair_email="chair@vanderbilt.edu",
        chair_title="Department Chair",
    )


def build_college(
    name: str = "School of Engineering",
    college_id: str = "college-1",
    has_departments: bool = True,
    departments: list[Department] | None = None,
) -> College:
    return College(
        id=college_id,
        name=name,
        has_departments=has_departments,
        dean_name="Dr. Dean",
        dean_email="dean@vanderbilt.edu",
        dean_title="Dean",
        departments=list(departments or []),
    )


@pytest.fixture
def college_factory():
    return build_college


@pytest.fixture
def department_factory():
    return build_department


@pytest.fixture
def engineering():
    """A college with one department."""
    return build_college(departments=[build_department()])


@pytest.fixture
def college_body():
    return {
        "name": "School of Engineering",
        "hasDepartments": True,
        "deanName": "Dr. Dean",
        "deanEmail": "dean@vanderbilt.edu",
    }


@pytest.fixture
def department_body():
    return {
        "name": "Computer Science",
        "chairName": "Dr. Chair",
        "chairEmail": "chair@vanderbilt.edu",
    }
