"""
Health check endpoint.

Used by load balancers, monitoring systems, and humans
to verify the application is running and can reach the
ledger database.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
import structlog

from residence_ledger.models.base import get_session_factory

router = APIRouter(tags=["Health"])
logger = structlog.get_logger(__name__)


@router.get("/health")
def health_check(session_factory: sessionmaker = Depends(get_session_factory)):
    """Return application health status including database connectivity."""
    try:
        with session_factory() as db:
            db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as exc:
        logger.error("health_check_database_unreachable", error=str(exc))
        db_status = "unhealthy"

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "service": "residence-ledger",
        "database": db_status,
    }
