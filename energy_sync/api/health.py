"""
Health and operational API endpoints
"""

import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from energy_sync.core.config import config
from energy_sync.core.logger import logger

router = APIRouter()

# Track service start time
start_time = time.time()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
def health_check(request: Request):
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "service": config.service_name,
        "role": config.service_role.value,
        "timestamp": _now(),
        "version": config.service_version,
    }


@router.get("/health/live")
def liveness_check(request: Request):
    """Liveness probe - check if the app is running"""
    return {
        "status": "alive",
        "service": config.service_name,
        "timestamp": _now(),
        "uptime": time.time() - start_time,
    }


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness probe - broker consuming and database reachable"""
    checks = [
        check_message_broker_health(request),
        await check_database_health(request),
    ]
    failed_checks = [check for check in checks if check["status"] != "healthy"]

    if not failed_checks:
        return {
            "status": "ready",
            "service": config.service_name,
            "timestamp": _now(),
            "checks": checks,
        }

    logger.warning(
        f"Readiness check failed - {len(failed_checks)} checks failed",
        metadata={
            "failed_checks": [check["name"] for check in failed_checks],
            "event": "readiness_check_failed",
        },
    )
    return JSONResponse(
        status_code=503,
        content={
            "status": "not ready",
            "service": config.service_name,
            "timestamp": _now(),
            "checks": checks,
        },
    )


def check_message_broker_health(request: Request) -> Dict[str, Any]:
    broker = getattr(request.app.state, "broker", None)
    if broker is None:
        return {"name": "message_broker", "status": "unhealthy", "error": "Broker not initialized"}

    return {
        "name": "message_broker",
        "status": "healthy" if broker.is_healthy() else "unhealthy",
        **broker.get_stats(),
    }


async def check_database_health(request: Request) -> Dict[str, Any]:
    """Check MongoDB connectivity"""
    database = getattr(request.app.state, "database", None)
    if database is None:
        return {"name": "database", "status": "unhealthy", "error": "Database not initialized"}

    check_start = time.time()
    try:
        await database.command("ping")
    except PyMongoError as e:
        logger.error(
            f"Database health check failed: {e}",
            metadata={"event": "health_check_database_failed"},
        )
        return {"name": "database", "status": "unhealthy", "error": str(e)}

    return {
        "name": "database",
        "status": "healthy",
        "database": database.name,
        "response_time_ms": round((time.time() - check_start) * 1000, 2),
    }
