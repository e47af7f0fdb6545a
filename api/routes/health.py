"""
Health check endpoint with database and last ingestion status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from api.dependencies import get_db
from schemas.api import HealthCheckResponse
from schemas.ingestion import IngestionRunResponse
from ingestion.run_tracker import IngestionRunTracker
from datetime import datetime
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Summary of the most recent ingestion run
    """
    db_connected = False

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except Exception as e:
        logger.error(f"Database connection failed: {str(e)}")

    last_run = None
    if db_connected:
        try:
            run = await IngestionRunTracker(db).latest()
            if run is not None:
                last_run = IngestionRunResponse.from_orm(run)
        except Exception as e:
            logger.error(f"Failed to fetch latest ingestion run: {str(e)}")

    return HealthCheckResponse(
        database_connected=db_connected,
        last_run=last_run,
        status="healthy",  # Placeholder, validator will update
        timestamp=datetime.utcnow()
    )
