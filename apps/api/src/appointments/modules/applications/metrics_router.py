"""
Metrics Router

Read-only aggregate view over all applications for the admin dashboard.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from appointments.core.database import get_db
from appointments.modules.applications import service
from appointments.modules.applications.schemas import MetricsResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "",
    response_model=MetricsResponse,
    summary="Workflow Metrics",
    description="""
Returns:
- totalApplications
- applicationsByStatus (every status, zero-filled)
- applicationsByCollege
- averageProcessingTime: mean days from submission to final decision
- stalledApplications: undecided applications with no activity for the stall threshold
- recentActivity: the latest status history entries
""",
)
async def get_metrics(db: AsyncSession = Depends(get_db)) -> MetricsResponse:
    metrics = await service.get_metrics(db)
    logger.info(f"Metrics computed: total={metrics.total_applications}")
    return MetricsResponse(data=metrics)
