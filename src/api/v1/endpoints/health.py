"""Health check endpoints for monitoring and deployment."""
from datetime import datetime, timezone

from fastapi import APIRouter
from sqlalchemy import text
import structlog

from src.core.config import settings
from src.core.deps import DbSession

router = APIRouter()
logger = structlog.get_logger()


@router.get("/")
async def health_check() -> dict:
    """
    Basic health check endpoint.

    Returns basic application status. Use this for load balancer health checks.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


@router.get("/ready")
async def readiness_check(db: DbSession) -> dict:
    """Ready once the subscriber store answers a trivial query."""
    checks = {"database": False}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception as e:
        logger.error("Database health check failed", error=str(e))

    return {
        "status": "ready" if all(checks.values()) else "not_ready",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
