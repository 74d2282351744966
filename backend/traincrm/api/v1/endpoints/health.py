"""
Health Check Endpoints

- /health/live  - process is up
- /health/ready - database reachable and tables created; 503 otherwise
"""

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import text
from datetime import datetime
from typing import Dict, Any
import asyncio
import time

from traincrm.core.config import settings
from traincrm.core.database import get_session_local
from traincrm.core.logging_config import logger


router = APIRouter(prefix="/health", tags=["Health Checks"])


async def check_database() -> Dict[str, Any]:
    """Connectivity plus a probe of the users table"""
    start = time.time()
    try:
        async with get_session_local()() as session:
            await session.execute(text("SELECT 1"))
            try:
                query_start = time.time()
                users = await session.scalar(text("SELECT COUNT(*) FROM users"))
                logger.log_db_query("SELECT", "users", (time.time() - query_start) * 1000, rows_affected=users or 0)
                tables_ok = True
            except Exception:
                tables_ok = False

        return {
            "status": "healthy",
            "latency_ms": round((time.time() - start) * 1000, 2),
            "tables_ready": tables_ok,
        }
    except Exception as e:
        logger.error(f"[HealthCheck] Database check failed: {e}")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start) * 1000, 2),
            "tables_ready": False,
            "error": str(e),
        }


async def check_rate_limit_storage() -> Dict[str, Any]:
    """Ping Redis when the rate limiter is configured to use it"""
    uri = settings.RATE_LIMIT_STORAGE_URI
    if not uri.startswith("redis"):
        return {"status": "healthy", "backend": "memory"}

    start = time.time()
    try:
        import redis.asyncio as redis

        client = redis.from_url(uri, decode_responses=True)
        await client.ping()
        await client.aclose()
        return {
            "status": "healthy",
            "backend": "redis",
            "latency_ms": round((time.time() - start) * 1000, 2),
        }
    except Exception as e:
        logger.warning(f"[HealthCheck] Redis check failed: {e}")
        return {"status": "degraded", "backend": "redis", "error": str(e)}


@router.get("/live")
async def liveness_check():
    return {
        "status": "alive",
        "timestamp": datetime.utcnow().isoformat(),
        "app": settings.APP_NAME,
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness probe for load balancers.

    Only the database is critical; a degraded rate-limit store is reported
    but does not fail the probe.
    """
    db_check, limiter_check = await asyncio.gather(
        check_database(),
        check_rate_limit_storage(),
    )

    is_ready = db_check.get("status") == "healthy" and db_check.get("tables_ready", False)
    response = {
        "status": "ready" if is_ready else "not_ready",
        "timestamp": datetime.utcnow().isoformat(),
        "checks": {
            "database": db_check,
            "rate_limit_storage": limiter_check,
        },
    }

    if not is_ready:
        logger.warning(f"[HealthCheck] Readiness check failed: {response}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=response)

    return response
