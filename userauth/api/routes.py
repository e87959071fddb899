"""Health endpoint."""

from datetime import datetime, timezone

import asyncpg
from fastapi import APIRouter, Depends

from userauth.api.dependencies import get_db_pool
from userauth.database import health_check as db_health_check

router = APIRouter()


@router.get("/health")
async def health_check(pool: asyncpg.Pool = Depends(get_db_pool)) -> dict:
    """Health check endpoint.

    Returns:
        Status, timestamp in ISO8601 format, and database health
    """
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    db_healthy = await db_health_check(pool)
    health_status["database"] = "healthy" if db_healthy else "unhealthy"

    return health_status
