"""
Health check endpoint for load balancers and monitoring.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.logging import get_logger
from app.schemas.common import HealthResponse

logger = get_logger(__name__)

router = APIRouter()


@router.get("", response_model=HealthResponse, summary="Health check")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Check API and database connectivity."""
    try:
        await db.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning("health_check_failed", error=str(e))
        return JSONResponse(
            status_code=503,
            content={"status": "error", "error": "Database unavailable"},
        )
    return HealthResponse(status="ok")
