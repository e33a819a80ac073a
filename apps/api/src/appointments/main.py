"""
Secondary Appointments API - Main Application Entry Point

This module initializes and configures the FastAPI application including:
- Logging
- Database and Redis connections
- Background job scheduler
- CORS middleware
- API routing
- Health check endpoints
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from appointments.api import api_router
from appointments.core import redis as redis_module
from appointments.core.config import settings
from appointments.core.database import async_session_maker, close_db, init_db
from appointments.core.logging_config import setup_logging
from appointments.core.redis import close_redis, init_redis
from appointments.core.scheduler import (
    list_registered_jobs,
    pause_job,
    resume_job,
    start_scheduler,
    stop_scheduler,
    trigger_job_manually,
)
from appointments.modules.applications.jobs import register_application_jobs

setup_logging(settings.log_level, settings.log_format)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events including:
    - Redis connection (optional, rate limiting falls back to memory)
    - Database connection
    - Background job scheduler
    """
    print(f"Starting Secondary Appointments API in {settings.python_env} mode...")

    try:
        await init_redis()
        print("[OK] Redis connected")
    except Exception as e:
        print(f"[FAIL] Redis connection failed, using in-memory rate limits: {e}")

    try:
        await init_db()
        print("[OK] Database connected")
    except Exception as e:
        print(f"[FAIL] Database connection failed: {e}")
        if settings.is_production:
            raise

    try:
        register_application_jobs()
        await start_scheduler()
        print("[OK] Background scheduler started")
    except Exception as e:
        print(f"[FAIL] Background scheduler failed to start: {e}")
        if settings.is_production:
            raise

    yield

    print("Shutting down Secondary Appointments API...")

    # Stop the scheduler first (wait for running jobs)
    await stop_scheduler()
    print("[OK] Background scheduler stopped")

    await close_redis()
    await close_db()
    print("[OK] Cleanup complete")


app = FastAPI(
    title="Secondary Appointments API",
    description="Faculty secondary appointment application and approval workflow",
    version="0.1.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

app.include_router(api_router, prefix="/api")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Liveness check for container orchestration."""
    return {"status": "healthy"}


@app.get("/ready", tags=["Health"])
async def readiness_check() -> dict[str, str]:
    """Readiness check: the database must answer, Redis is optional."""
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "database": "error", "message": str(e)},
        ) from e

    return {
        "status": "ready",
        "database": "connected",
        "redis": "connected" if redis_module.is_redis_available() else "unavailable",
    }


# ============================================
# Background Job Debug Endpoints
# ============================================
# Development only. In production, jobs run automatically on schedule.

if settings.is_development:

    @app.get("/debug/jobs", tags=["Debug"])
    async def list_jobs():
        """List all registered background jobs and their status."""
        return {"jobs": list_registered_jobs()}

    @app.post("/debug/jobs/{job_id}/trigger", tags=["Debug"])
    async def trigger_job(job_id: str):
        """
        Manually trigger a background job.

        Available jobs:
            - applications_send_approver_reminders
            - applications_cleanup_expired_tokens
        """
        try:
            return await trigger_job_manually(job_id)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

    @app.post("/debug/jobs/{job_id}/pause", tags=["Debug"])
    async def pause_job_endpoint(job_id: str):
        return {"job_id": job_id, "paused": pause_job(job_id)}

    @app.post("/debug/jobs/{job_id}/resume", tags=["Debug"])
    async def resume_job_endpoint(job_id: str):
        return {"job_id": job_id, "resumed": resume_job(job_id)}
