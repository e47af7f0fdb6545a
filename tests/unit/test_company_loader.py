"""
Unit tests for the content-aware company upsert
"""

import pytest
from unittest.mock import AsyncMock
from sqlalchemy import select, func
from ingestion.loaders.company_loader import CompanyLoader
from ingestion.transformers.normalizer import normalize
from models.company import PortfolioCompany
from core.exceptions import LoadError, UpsertError

ENDPOINT = "https://portfolio.test/bioportfoliosearch.json"
LIST_URL = "https://www.kkr.com/invest/portfolio"


async def count_companies(session) -> int:
    result = await session.execute(select(func.count()).select_from(PortfolioCompany))
    return result.scalar()


class TestCompanyLoader:

    @pytest.mark.asyncio
    async def test_insert_new_company(self, db_session, make_raw):
        loader = CompanyLoader(db_session)
        record = normalize(make_raw("Acme"), ENDPOINT, LIST_URL)

        result = await loader.upsert(record)

        assert result.created is True
        assert result.updated is False
        stored = await db_session.get(PortfolioCompany, record.company_id)
        assert stored.name == "Acme"
        assert stored.asset_classes == ["Private Equity"]
        assert stored.content_hash == record.content_hash

    @pytest.mark.asyncio
    async def test_unchanged_company_is_noop(self, db_session, make_raw):
        loader = CompanyLoader(db_session)
        await loader.upsert(normalize(make_raw("Acme"), ENDPOINT, LIST_URL))
        stored = await db_session.get(PortfolioCompany, normalize(make_raw("Acme"), ENDPOINT, LIST_URL).company_id)
        updated_at = stored.updated_at

        # sortingName is volatile and must not cause a write
        result = await loader.upsert(normalize(make_raw("Acme", sortingName="zz"), ENDPOINT, LIST_URL))

        assert result.created is False
        assert result.updated is False
        assert stored.updated_at == updated_at
        assert await count_companies(db_session) == 1

    @pytest.mark.asyncio
    async def test_changed_content_updates_in_place(self, db_session, make_raw):
        loader = CompanyLoader(db_session)
        first = normalize(make_raw("Acme", industry="Technology"), ENDPOINT, LIST_URL)
        await loader.upsert(first)

        changed = normalize(make_raw("ACME", industry="Industrials", yoi="2024"), ENDPOINT, LIST_URL)
        result = await loader.upsert(changed)

        assert changed.company_id == first.company_id
        assert result.updated is True
        assert result.created is False
        stored = await db_session.get(PortfolioCompany, first.company_id)
        assert stored.industry == "Industrials"
        assert stored.year_of_investment == "2024"
        assert stored.content_hash == changed.content_hash
        assert await count_companies(db_session) == 1

    @pytest.mark.asyncio
    async def test_storage_failure_rolls_back_and_raises(self, make_raw):
        session = AsyncMock()
        session.execute = AsyncMock(side_effect=RuntimeError("connection lost"))
        loader = CompanyLoader(session)
        record = normalize(make_raw("Acme"), ENDPOINT, LIST_URL)

        with pytest.raises(UpsertError) as exc_info:
            await loader.upsert(record)

        session.rollback.assert_awaited_once()
        assert exc_info.value.context["company_id"] == record.company_id
        assert exc_info.value.context["operation"] == "SELECT"
        assert isinstance(exc_info.value, LoadError)
        assert exc_info.value.context["table_name"] == "portfolio_companies"

    @pytest.mark.asyncio
    async def test_delete_all_removes_every_company(self, db_session, make_raw):
        loader = CompanyLoader(db_session)
        for name in ("Acme", "Beacon", "Zeta"):
            await loader.upsert(normalize(make_raw(name), ENDPOINT, LIST_URL))

        deleted = await loader.delete_all()

        assert deleted == 3
        assert await count_companies(db_session) == 0

    @pytest.mark.asyncio
    async def test_delete_all_failure_rolls_back_and_raises(self):
        session = AsyncMock()
        session.execute = AsyncMock(side_effect=RuntimeError("connection lost"))

        with pytest.raises(LoadError) as exc_info:
            await CompanyLoader(session).delete_all()

        session.rollback.assert_awaited_once()
        assert exc_info.value.context["operation"] == "DELETE"
