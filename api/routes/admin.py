"""
Admin endpoints: manual ingestion trigger and portfolio reset
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from api.dependencies import get_db, require_admin_key
from schemas.api import DeleteCompaniesResponse
from schemas.ingestion import IngestionResult
from ingestion.loaders.company_loader import CompanyLoader
from ingestion.runner import PortfolioIngestRunner
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin_key)])


@router.post("/ingest", response_model=IngestionResult)
async def trigger_ingest(db: AsyncSession = Depends(get_db)):
    """
    Run one ingestion synchronously and return its result.

    Requires the X-Admin-Key header. A failed run is still reported with
    HTTP 200; inspect ``status`` in the body.
    """
    logger.info("Manual ingestion triggered via admin API")
    return await PortfolioIngestRunner(db).ingest_all()


@router.delete("/companies", response_model=DeleteCompaniesResponse)
async def delete_all_companies(db: AsyncSession = Depends(get_db)):
    """
    Delete every stored company so the next run starts from scratch.

    Requires the X-Admin-Key header. Ingestion run history is kept.
    """
    logger.warning("Deleting all portfolio companies via admin API")
    deleted = await CompanyLoader(db).delete_all()
    return DeleteCompaniesResponse(
        deleted=deleted,
        message=f"Successfully deleted {deleted} companies"
    )
