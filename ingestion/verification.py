"""
Post-ingestion data verification.

Checks the stored portfolio against what the most recent run reported:
- Stored company count matches the source total
- Last run fetched as many companies as the source reported
- No company is missing a required field
- No duplicate company ids
- Distribution by asset class, industry and region (for eyeballing)

The distribution queries are shared with the /stats endpoint.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Optional

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from ingestion.run_tracker import IngestionRunTracker
from models.company import PortfolioCompany

REQUIRED_FIELDS = ("name", "name_sort", "asset_class_raw", "industry", "region", "content_hash")


async def count_companies(db: AsyncSession) -> int:
    result = await db.execute(select(func.count()).select_from(PortfolioCompany))
    return result.scalar()


async def count_by(db: AsyncSession, column) -> Dict[str, int]:
    """Company count per distinct column value, largest first"""
    result = await db.execute(
        select(column, func.count()).group_by(column).order_by(func.count().desc())
    )
    return {value or "Unknown": count for value, count in result.all()}


async def count_by_asset_class(db: AsyncSession) -> Dict[str, int]:
    """A company with several asset classes counts once in each"""
    # asset_classes is a JSON list; count in Python so it works on any backend
    result = await db.execute(select(PortfolioCompany.asset_classes))
    counts = Counter()
    for (asset_classes,) in result.all():
        counts.update(asset_classes or ["Unknown"])
    return dict(counts.most_common())


@dataclass
class VerificationReport:
    total_companies: int
    source_total: Optional[int]
    last_run_id: Optional[str]
    last_run_status: Optional[str]
    last_run_fetched: Optional[int]
    last_run_pages: Optional[int]
    missing_required_fields: int
    duplicate_ids: int
    by_asset_class: Dict[str, int] = field(default_factory=dict)
    by_industry: Dict[str, int] = field(default_factory=dict)
    by_region: Dict[str, int] = field(default_factory=dict)

    @property
    def companies_match_source(self) -> bool:
        return self.source_total is None or self.total_companies == self.source_total

    @property
    def fetch_matches_source(self) -> bool:
        return self.last_run_id is not None and self.last_run_fetched == self.source_total

    @property
    def passed(self) -> bool:
        return (
            self.total_companies > 0
            and self.companies_match_source
            and (self.fetch_matches_source or self.last_run_id is None)
            and self.missing_required_fields == 0
            and self.duplicate_ids == 0
        )


async def verify_data(db: AsyncSession) -> VerificationReport:
    """Build a VerificationReport from the current database contents"""
    last_run = await IngestionRunTracker(db).latest()

    missing_result = await db.execute(
        select(func.count()).select_from(PortfolioCompany).where(or_(*[
            func.coalesce(getattr(PortfolioCompany, name), "") == ""
            for name in REQUIRED_FIELDS
        ]))
    )

    duplicates = (
        select(PortfolioCompany.company_id)
        .group_by(PortfolioCompany.company_id)
        .having(func.count() > 1)
        .subquery()
    )
    duplicate_result = await db.execute(select(func.count()).select_from(duplicates))

    return VerificationReport(
        total_companies=await count_companies(db),
        source_total=last_run.total_from_source if last_run else None,
        last_run_id=last_run.run_id if last_run else None,
        last_run_status=last_run.status.value if last_run else None,
        last_run_fetched=last_run.records_fetched if last_run else None,
        last_run_pages=last_run.pages_from_source if last_run else None,
        missing_required_fields=missing_result.scalar(),
        duplicate_ids=duplicate_result.scalar(),
        by_asset_class=await count_by_asset_class(db),
        by_industry=await count_by(db, PortfolioCompany.industry),
        by_region=await count_by(db, PortfolioCompany.region),
    )
