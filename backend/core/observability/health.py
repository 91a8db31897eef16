"""Health, readiness and metrics endpoints."""

from importlib import metadata
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from backend.core.db import get_engine
from backend.core.observability.logging import logger
from backend.core.observability.metrics import get_metrics

router = APIRouter()


def get_version() -> str:
    """Installed distribution version, or ``dev`` when running from a checkout."""
    try:
        return metadata.version("premium-desk")
    except metadata.PackageNotFoundError:
        return "dev"


def check_database(engine: Engine) -> str:
    """Check database connectivity with light query."""
    try:
        with engine.connect() as conn:
            value = conn.execute(text("SELECT 1")).scalar()
        return "OK" if value == 1 else "FAIL"
    except SQLAlchemyError as exc:
        logger.warning("health_db_check_failed", extra={"error": str(exc)})
        return "FAIL"


@router.get("/health/ready")
def readiness_check(engine: Engine = Depends(get_engine)) -> dict[str, Any]:
    """Readiness endpoint for load balancers."""
    db_status = check_database(engine)

    return {
        "status": "OK" if db_status == "OK" else "DEGRADED",
        "version": get_version(),
        "db": db_status,
    }


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """Liveness endpoint - always OK if service is running."""
    return {"status": "OK"}


@router.get("/health/metrics")
def metrics_snapshot() -> dict[str, Any]:
    return get_metrics()
