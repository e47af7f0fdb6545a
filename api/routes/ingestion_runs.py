"""
Ingestion run history endpoints
"""

from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from api.dependencies import get_db
from schemas.ingestion import IngestionRunResponse
from ingestion.run_tracker import IngestionRunTracker

router = APIRouter(prefix="/ingestion", tags=["Ingestion"])


@router.get("/runs", response_model=List[IngestionRunResponse])
async def list_runs(
    limit: int = Query(10, ge=1, le=100, description="Number of recent runs to return"),
    db: AsyncSession = Depends(get_db)
):
    """Recent ingestion runs, most recent first"""
    runs = await IngestionRunTracker(db).recent(limit)
    return [IngestionRunResponse.from_orm(run) for run in runs]


@router.get("/runs/latest", response_model=IngestionRunResponse)
async def latest_run(db: AsyncSession = Depends(get_db)):
    run = await IngestionRunTracker(db).latest()
    if run is None:
        raise HTTPException(status_code=404, detail="No ingestion runs recorded yet")
    return IngestionRunResponse.from_orm(run)
