"""
Load normalized companies with content-aware upsert logic (idempotency)
"""

from dataclasses import dataclass
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from models.company import PortfolioCompany
from schemas.company import CompanyUpsert
from core.exceptions import LoadError, UpsertError
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpsertResult:
    """Outcome of a single upsert; both flags False means no write happened"""
    company_id: str
    created: bool
    updated: bool


class CompanyLoader:
    """
    Upsert normalized companies one key at a time.

    Ensures:
    - No duplicate rows on repeated runs (company_id is the primary key)
    - Existing rows are rewritten only when content_hash differs
    - Unchanged companies cost zero writes, so replaying an unchanged
      upstream produces created=0, updated=0
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def upsert(self, record: CompanyUpsert) -> UpsertResult:
        """
        Insert if unseen, update if the content hash changed, otherwise no-op.

        Each write is committed on its own so one failing company never
        rolls back the others.

        Raises:
            UpsertError: On any storage failure (session is rolled back)
        """
        operation = "SELECT"
        try:
            result = await self.db.execute(
                select(PortfolioCompany).where(PortfolioCompany.company_id == record.company_id)
            )
            existing = result.scalar_one_or_none()

            if existing is None:
                operation = "INSERT"
                self.db.add(PortfolioCompany(**record.column_values()))
                await self.db.commit()
                logger.debug(f"Created company {record.company_id} ({record.name})")
                return UpsertResult(record.company_id, created=True, updated=False)

            if existing.content_hash == record.content_hash:
                return UpsertResult(record.company_id, created=False, updated=False)

            operation = "UPDATE"
            for column, value in record.column_values().items():
                if column != "company_id":
                    setattr(existing, column, value)
            existing.updated_at = datetime.utcnow()
            await self.db.commit()
            logger.debug(f"Updated company {record.company_id} ({record.name})")
            return UpsertResult(record.company_id, created=False, updated=True)

        except Exception as e:
            await self.db.rollback()
            raise UpsertError(
                f"Failed to upsert company {record.name!r}",
                context={
                    "company_id": record.company_id,
                    "operation": operation,
                    "table_name": "portfolio_companies"
                },
                original_exception=e
            )

    async def delete_all(self) -> int:
        """
        Remove every stored company. Run history is left untouched.

        Returns:
            Number of deleted rows

        Raises:
            LoadError: On storage failure (session is rolled back)
        """
        try:
            result = await self.db.execute(delete(PortfolioCompany))
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            raise LoadError(
                "Failed to delete portfolio companies",
                context={"operation": "DELETE", "table_name": "portfolio_companies"},
                original_exception=e
            )
        logger.warning(f"Deleted {result.rowcount} portfolio companies")
        return result.rowcount
