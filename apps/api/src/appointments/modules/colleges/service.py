"""
College Catalog Service

Business rules for the college and department catalog: unique college
names, departments only under colleges that have them, and departments
addressed through the college they belong to.
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import College, Department
from .repository import CollegeRepository, DepartmentRepository
from .schemas import CollegeIn, DepartmentIn

logger = logging.getLogger(__name__)


class CollegeServiceError(Exception):
    """Base exception for college catalog errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class CollegeNotFoundError(CollegeServiceError):
    def __init__(self, college_id: str):
        super().__init__(
            message=f"College {college_id} not found",
            error_code="COLLEGE_NOT_FOUND",
            status_code=404,
        )


class DepartmentNotFoundError(CollegeServiceError):
    def __init__(self, department_id: str):
        super().__init__(
            message=f"Department {department_id} not found",
            error_code="DEPARTMENT_NOT_FOUND",
            status_code=404,
        )


class DuplicateCollegeError(CollegeServiceError):
    """Raised when another college already uses the name."""

    def __init__(self, name: str):
        super().__init__(
            message=f"A college named '{name}' already exists",
            error_code="DUPLICATE_COLLEGE",
            status_code=409,
        )


class CollegeHasNoDepartmentsError(CollegeServiceError):
    def __init__(self, college_name: str):
        super().__init__(
            message=f"{college_name} does not have departments",
            error_code="COLLEGE_HAS_NO_DEPARTMENTS",
            status_code=400,
        )


class DepartmentCollegeMismatchError(CollegeServiceError):
    """Raised when a department is addressed through the wrong college."""

    def __init__(self):
        super().__init__(
            message="Department does not belong to this college",
            error_code="DEPARTMENT_COLLEGE_MISMATCH",
            status_code=400,
        )


# ============================================
# Colleges
# ============================================


async def list_colleges(db: AsyncSession) -> list[College]:
    return await CollegeRepository.list_all(db)


async def get_college(db: AsyncSession, college_id: str) -> College:
    """
    Get a college by ID.

    Raises:
        CollegeNotFoundError: If the college doesn't exist
    """
    college = await CollegeRepository.get_by_id(db, college_id)
    if not college:
        raise CollegeNotFoundError(college_id)
    return college


async def find_college(db: AsyncSession, name: str) -> College | None:
    """Look up a college by the name typed on the submission form."""
    return await CollegeRepository.get_by_name(db, name)


async def catalog_is_empty(db: AsyncSession) -> bool:
    return await CollegeRepository.count(db) == 0


async def _ensure_name_free(db: AsyncSession, name: str, college_id: str | None = None) -> None:
    existing = await CollegeRepository.get_by_name(db, name)
    if existing is not None and existing.id != college_id:
        raise DuplicateCollegeError(name)


async def create_college(db: AsyncSession, data: CollegeIn) -> College:
    """
    Add a college to the catalog.

    Raises:
        DuplicateCollegeError: If the name is already taken
    """
    await _ensure_name_free(db, data.name)

    try:
        college = await CollegeRepository.create(db, data)
    except IntegrityError as e:
        # Lost a race with another insert of the same name
        await db.rollback()
        raise DuplicateCollegeError(data.name) from e

    return college


async def update_college(db: AsyncSession, college_id: str, data: CollegeIn) -> College:
    """
    Replace a college's details.

    Raises:
        CollegeNotFoundError: If the college doesn't exist
        DuplicateCollegeError: If another college already uses the new name
    """
    college = await get_college(db, college_id)
    await _ensure_name_free(db, data.name, college_id=college.id)

    try:
        return await CollegeRepository.update(db, college, data)
    except IntegrityError as e:
        await db.rollback()
        raise DuplicateCollegeError(data.name) from e


async def delete_college(db: AsyncSession, college_id: str) -> None:
    """Delete a college and its departments."""
    college = await get_college(db, college_id)
    await CollegeRepository.delete(db, college)


# ============================================
# Departments
# ============================================


async def list_departments(db: AsyncSession, college_id: str) -> list[Department]:
    """
    Departments of a college, ordered by name.

    Colleges without departments always return an empty list.
    """
    college = await get_college(db, college_id)
    if not college.has_departments:
        return []
    return await DepartmentRepository.list_for_college(db, college.id)


async def add_department(db: AsyncSession, college_id: str, data: DepartmentIn) -> Department:
    """
    Add a department to a college.

    Raises:
        CollegeNotFoundError: If the college doesn't exist
        CollegeHasNoDepartmentsError: If the college is not organized in departments
    """
    college = await get_college(db, college_id)
    if not college.has_departments:
        raise CollegeHasNoDepartmentsError(college.name)
    return await DepartmentRepository.create(db, college, data)


async def _get_department(db: AsyncSession, college_id: str, department_id: str) -> Department:
    department = await DepartmentRepository.get_by_id(db, department_id)
    if not department:
        raise DepartmentNotFoundError(department_id)
    if department.college_id != college_id:
        logger.warning(
            f"Department {department_id} addressed through college {college_id}, "
            f"belongs to {department.college_id}"
        )
        raise DepartmentCollegeMismatchError()
    return department


async def update_department(
    db: AsyncSession,
    college_id: str,
    department_id: str,
    data: DepartmentIn,
) -> Department:
    department = await _get_department(db, college_id, department_id)
    return await DepartmentRepository.update(db, department, data)


async def delete_department(db: AsyncSession, college_id: str, department_id: str) -> None:
    department = await _get_department(db, college_id, department_id)
    await DepartmentRepository.delete(db, department)
