from fastapi import APIRouter

from appointments.modules.applications import metrics_router
from appointments.modules.applications import router as applications_router
from appointments.modules.colleges import router as colleges_router

api_router = APIRouter()

api_router.include_router(applications_router, prefix="/applications", tags=["Applications"])

api_router.include_router(colleges_router, prefix="/colleges", tags=["Colleges"])

api_router.include_router(metrics_router, prefix="/metrics", tags=["Metrics"])
