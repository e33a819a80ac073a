"""
College Catalog Repository

Database operations for colleges and departments.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import College, Department
from .schemas import CollegeIn, DepartmentIn

logger = logging.getLogger(__name__)


class CollegeRepository:
    """Repository for college database operations."""

    @staticmethod
    async def list_all(db: AsyncSession) -> list[College]:
        """Every college ordered by name, departments included."""
        result = await db.execute(select(College).order_by(College.name.asc()))
        return list(result.scalars().all())

    @staticmethod
    async def count(db: AsyncSession) -> int:
        result = await db.execute(select(func.count()).select_from(College))
        return result.scalar_one()

    @staticmethod
    async def get_by_id(db: AsyncSession, college_id: str) -> College | None:
        return await db.get(College, college_id)

    @staticmethod
    async def get_by_name(db: AsyncSession, name: str) -> College | None:
        """
        Get a college by name, ignoring case and surrounding whitespace.

        Args:
            db: Database session
            name: College name as typed on the form

        Returns:
            College instance or None if not found
        """
        result = await db.execute(
            select(College).where(func.lower(College.name) == name.strip().lower())
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def create(db: AsyncSession, data: CollegeIn) -> College:
        college = College(**data.model_dump(), departments=[])

        db.add(college)
        await db.commit()
        await db.refresh(college)

        logger.info(f"Created college: {college.id} - {college.name}")
        return college

    @staticmethod
    async def update(db: AsyncSession, college: College, data: CollegeIn) -> College:
        for field, value in data.model_dump().items():
            setattr(college, field, value)

        await db.commit()
        await db.refresh(college)

        logger.info(f"Updated college {college.id}")
        return college

    @staticmethod
    async def delete(db: AsyncSession, college: College) -> None:
        """Delete a college together with its departments."""
        await db.delete(college)
        await db.commit()

        logger.info(f"Deleted college {college.id} - {college.name}")


class DepartmentRepository:
    """Repository for department database operations."""

    @staticmethod
    async def list_for_college(db: AsyncSession, college_id: str) -> list[Department]:
        result = await db.execute(
            select(Department)
            .where(Department.college_id == college_id)
            .order_by(Department.name.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_by_id(db: AsyncSession, department_id: str) -> Department | None:
        return await db.get(Department, department_id)

    @staticmethod
    async def create(db: AsyncSession, college: College, data: DepartmentIn) -> Department:
        department = Department(**data.model_dump())
        college.departments.append(department)

        await db.commit()
        await db.refresh(department)

        logger.info(f"Created department {department.id} in college {college.id}")
        return department

    @staticmethod
    async def update(db: AsyncSession, department: Department, data: DepartmentIn) -> Department:
        for field, value in data.model_dump().items():
            setattr(department, field, value)

        await db.commit()
        await db.refresh(department)

        logger.info(f"Updated department {department.id}")
        return department

    @staticmethod
    async def delete(db: AsyncSession, department: Department) -> None:
        await db.delete(department)
        await db.commit()

        logger.info(f"Deleted department {department.id}")
