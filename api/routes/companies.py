"""
Company retrieval endpoints with pagination and filtering
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from api.dependencies import get_db
from schemas.api import CompaniesResponse, PaginationMetadata
from schemas.company import CompanyResponse
from models.company import PortfolioCompany
from typing import Optional
import time
import uuid
import math
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Companies"])


@router.get("/companies", response_model=CompaniesResponse)
async def list_companies(
    request: Request,
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(50, ge=1, le=500, description="Items per page"),
    asset_class: Optional[str] = Query(None, description="Filter by asset class"),
    industry: Optional[str] = Query(None, description="Filter by industry"),
    region: Optional[str] = Query(None, description="Filter by region"),
    q: Optional[str] = Query(None, description="Search in company name"),
    db: AsyncSession = Depends(get_db)
):
    """
    Retrieve portfolio companies ordered by name.

    Features:
    - Pagination
    - Exact filters on industry and region
    - Asset class match against the (possibly comma-joined) raw value
    - Case-insensitive name search
    """
    start_time = time.time()
    request_id = getattr(request.state, "request_id", f"req_{uuid.uuid4().hex[:12]}")

    logger.info(
        f"[{request_id}] GET /companies - page={page}, limit={limit}, "
        f"filters: asset_class={asset_class}, industry={industry}, region={region}, q={q}"
    )

    filters = []

    if asset_class:
        filters.append(PortfolioCompany.asset_class_raw.ilike(f"%{asset_class}%"))

    if industry:
        filters.append(PortfolioCompany.industry == industry)

    if region:
        filters.append(PortfolioCompany.region == region)

    if q:
        filters.append(PortfolioCompany.name.ilike(f"%{q}%"))

    query = select(PortfolioCompany)
    count_query = select(func.count()).select_from(PortfolioCompany)
    if filters:
        query = query.where(and_(*filters))
        count_query = count_query.where(and_(*filters))

    count_result = await db.execute(count_query)
    total_items = count_result.scalar()

    total_pages = math.ceil(total_items / limit) if total_items > 0 else 0
    offset = (page - 1) * limit

    query = query.order_by(PortfolioCompany.name_sort.asc(), PortfolioCompany.company_id.asc())
    query = query.offset(offset).limit(limit)

    result = await db.execute(query)
    items = [CompanyResponse.model_validate(company) for company in result.scalars().all()]

    api_latency_ms = (time.time() - start_time) * 1000
    logger.info(f"[{request_id}] Returned {len(items)} companies ({api_latency_ms:.2f}ms)")

    return CompaniesResponse(
        items=items,
        pagination=PaginationMetadata(
            current_page=page,
            page_size=limit,
            total_items=total_items,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_previous=page > 1
        ),
        filters_applied={k: v for k, v in {
            "asset_class": asset_class,
            "industry": industry,
            "region": region,
            "q": q
        }.items() if v is not None}
    )


@router.get("/companies/{company_id}", response_model=CompanyResponse)
async def get_company(company_id: str, db: AsyncSession = Depends(get_db)):
    """Retrieve one company by its derived id"""
    company = await db.get(PortfolioCompany, company_id)
    if company is None:
        raise HTTPException(status_code=404, detail=f"Company {company_id} not found")
    return CompanyResponse.model_validate(company)
