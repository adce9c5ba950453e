"""
Health Check Endpoints

Provides liveness and readiness checks for orchestration systems.
"""

from typing import Dict

from fastapi import APIRouter, Request, Response

from orderstream.database.connection import check_database_health

router = APIRouter()


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Liveness probe endpoint.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(request: Request, response: Response) -> Dict[str, str]:
    """
    Readiness probe endpoint.

    Returns 200 once the database answers and the stream consumer is running.
    """
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        response.status_code = 503
        return {"status": "not_ready", "reason": "starting"}

    db_health = await check_database_health(engine)
    if db_health.get("status") != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": "database_unavailable"}

    consumer = getattr(request.app.state, "consumer", None)
    if consumer is not None and not consumer.is_running:
        response.status_code = 503
        return {"status": "not_ready", "reason": "consumer_stopped"}

    return {"status": "ready"}
