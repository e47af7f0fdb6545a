"""
Portfolio statistics endpoint
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from api.dependencies import get_db
from schemas.api import StatsResponse
from models.company import PortfolioCompany
from ingestion.verification import count_by, count_by_asset_class, count_companies
import uuid
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Statistics"])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(db: AsyncSession = Depends(get_db)):
    """
    Get portfolio statistics.

    Returns:
    - Total number of stored companies
    - Counts per asset class (a company with several classes counts once in each)
    - Counts per industry and per region
    """
    request_id = f"req_{uuid.uuid4().hex[:12]}"

    logger.info(f"[{request_id}] GET /stats")

    return StatsResponse(
        total_companies=await count_companies(db),
        by_asset_class=await count_by_asset_class(db),
        by_industry=await count_by(db, PortfolioCompany.industry),
        by_region=await count_by(db, PortfolioCompany.region),
    )
