"""
Colleges Router

API endpoints for the college and department catalog used by the
submission form.

Endpoints:
- GET /colleges - List colleges with their departments
- POST /colleges - Add a college
- GET /colleges/{id} - College detail
- PUT /colleges/{id} - Replace a college's details
- DELETE /colleges/{id} - Delete a college and its departments
- GET /colleges/{id}/departments - Departments of a college
- POST /colleges/{id}/departments - Add a department
- PUT /colleges/{id}/departments/{department_id} - Replace a department
- DELETE /colleges/{id}/departments/{department_id} - Delete a department
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from appointments.core.database import get_db

from . import service
from .schemas import (
    CollegeIn,
    CollegeListResponse,
    CollegeOut,
    CollegeResponse,
    DeleteResponse,
    DepartmentIn,
    DepartmentListResponse,
    DepartmentOut,
    DepartmentResponse,
)
from .service import CollegeServiceError

logger = logging.getLogger(__name__)

router = APIRouter()


def _handle_service_error(e: CollegeServiceError) -> None:
    """Convert service errors to HTTPExceptions."""
    raise HTTPException(
        status_code=e.status_code,
        detail={"error": e.error_code, "message": e.message},
    ) from e


# ============================================
# Colleges
# ============================================


@router.get(
    "",
    response_model=CollegeListResponse,
    summary="List Colleges",
    description="Every college ordered by name. Colleges with departments include them.",
)
async def list_colleges(db: AsyncSession = Depends(get_db)) -> CollegeListResponse:
    colleges = await service.list_colleges(db)
    return CollegeListResponse(
        data=[CollegeOut.from_model(c) for c in colleges],
        message=f"Found {len(colleges)} colleges",
    )


@router.post(
    "",
    response_model=CollegeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create College",
    responses={409: {"description": "A college with this name already exists"}},
)
async def create_college(
    data: CollegeIn,
    db: AsyncSession = Depends(get_db),
) -> CollegeResponse:
    try:
        college = await service.create_college(db, data)
    except CollegeServiceError as e:
        logger.warning(f"College creation rejected: {e.message}")
        _handle_service_error(e)

    return CollegeResponse(
        data=CollegeOut.from_model(college),
        message="College created successfully",
    )


@router.get(
    "/{college_id}",
    response_model=CollegeResponse,
    summary="Get College",
    responses={404: {"description": "College not found"}},
)
async def get_college(
    college_id: str,
    db: AsyncSession = Depends(get_db),
) -> CollegeResponse:
    try:
        college = await service.get_college(db, college_id)
    except CollegeServiceError as e:
        _handle_service_error(e)

    return CollegeResponse(data=CollegeOut.from_model(college))


@router.put(
    "/{college_id}",
    response_model=CollegeResponse,
    summary="Update College",
    responses={
        404: {"description": "College not found"},
        409: {"description": "Another college already uses this name"},
    },
)
async def update_college(
    college_id: str,
    data: CollegeIn,
    db: AsyncSession = Depends(get_db),
) -> CollegeResponse:
    try:
        college = await service.update_college(db, college_id, data)
    except CollegeServiceError as e:
        _handle_service_error(e)

    return CollegeResponse(
        data=CollegeOut.from_model(college),
        message="College updated successfully",
    )


@router.delete(
    "/{college_id}",
    response_model=DeleteResponse,
    summary="Delete College",
    responses={404: {"description": "College not found"}},
)
async def delete_college(
    college_id: str,
    db: AsyncSession = Depends(get_db),
) -> DeleteResponse:
    try:
        await service.delete_college(db, college_id)
    except CollegeServiceError as e:
        _handle_service_error(e)

    return DeleteResponse(message="College deleted successfully")


# ============================================
# Departments
# ============================================


@router.get(
    "/{college_id}/departments",
    response_model=DepartmentListResponse,
    summary="List Departments",
    responses={404: {"description": "College not found"}},
)
async def list_departments(
    college_id: str,
    db: AsyncSession = Depends(get_db),
) -> DepartmentListResponse:
    try:
        departments = await service.list_departments(db, college_id)
    except CollegeServiceError as e:
        _handle_service_error(e)

    return DepartmentListResponse(
        data=[DepartmentOut.from_model(d) for d in departments],
        message=f"Found {len(departments)} departments",
    )


@router.post(
    "/{college_id}/departments",
    response_model=DepartmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add Department",
    responses={
        400: {"description": "The college is not organized in departments"},
        404: {"description": "College not found"},
    },
)
async def add_department(
    college_id: str,
    data: DepartmentIn,
    db: AsyncSession = Depends(get_db),
) -> DepartmentResponse:
    try:
        department = await service.add_department(db, college_id, data)
    except CollegeServiceError as e:
        _handle_service_error(e)

    return DepartmentResponse(
        data=DepartmentOut.from_model(department),
        message="Department created successfully",
    )


@router.put(
    "/{college_id}/departments/{department_id}",
    response_model=DepartmentResponse,
    summary="Update Department",
    responses={
        400: {"description": "Department does not belong to this college"},
        404: {"description": "Department not found"},
    },
)
async def update_department(
    college_id: str,
    department_id: str,
    data: DepartmentIn,
    db: AsyncSession = Depends(get_db),
) -> DepartmentResponse:
    try:
        department = await service.update_department(db, college_id, department_id, data)
    except CollegeServiceError as e:
        _handle_service_error(e)

    return DepartmentResponse(
        data=DepartmentOut.from_model(department),
        message="Department updated successfully",
    )


@router.delete(
    "/{college_id}/departments/{department_id}",
    response_model=DeleteResponse,
    summary="Delete Department",
    responses={
        400: {"description": "Department does not belong to this college"},
        404: {"description": "Department not found"},
    },
)
async def delete_department(
    college_id: str,
    department_id: str,
    db: AsyncSession = Depends(get_db),
) -> DeleteResponse:
    try:
        await service.delete_department(db, college_id, department_id)
    except CollegeServiceError as e:
        _handle_service_error(e)

    return DeleteResponse(message="Department deleted successfully")
