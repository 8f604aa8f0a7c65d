"""
Health check endpoint
"""

from fastapi import APIRouter
from sqlalchemy import text

from app.core.deps import SessionDep
from app.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(db: SessionDep):
    """API liveness plus a SELECT 1 against the database."""
    database = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        database = "error"
    return {"api": "ok", "database": database}
