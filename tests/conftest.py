"""
Pytest configuration and fixtures
"""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from models.base import Base
from ingestion.extractors.portfolio_api import PageResult
from schemas.company import RawPortfolioCompany
from typing import AsyncGenerator, Dict, List, Optional, Union

# In-memory SQLite shared across the whole test through a single connection
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

FAKE_ENDPOINT = "https://portfolio.test/bioportfoliosearch.json"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()


def _make_raw(name: str, hq: str = "New York, NY", **fields) -> RawPortfolioCompany:
    values = {
        "name": name,
        "sortingName": name.lower(),
        "hq": hq,
        "logo": f"/content/dam/kkr/portfolio/{name.lower().replace(' ', '-')}.png",
        "region": "Americas",
        "assetClass": "Private Equity",
        "industry": "Technology",
        "yoi": "2020",
        "url": f"www.{name.lower().replace(' ', '')}.com",
        "description": f"<p>{name} is a portfolio company.</p>",
    }
    values.update(fields)
    return RawPortfolioCompany.model_validate(values)


@pytest.fixture
def make_raw():
    """Factory for raw companies; keyword overrides use upstream (camelCase) keys"""
    return _make_raw


@pytest.fixture
def mock_api_payload():
    """One upstream page as the portfolio API returns it"""
    return {
        "success": True,
        "message": "",
        "hits": 2,
        "pages": 1,
        "results": [
            {
                "name": "Beacon Pointe Advisors",
                "sortingName": "beacon pointe advisors",
                "logo": "/content/dam/kkr/portfolio/beacon.png",
                "hq": "Newport Beach, CA",
                "region": "Americas",
                "assetClass": "Private Equity",
                "industry": "Financials",
                "yoi": "2021",
                "url": "www.beaconpointe.com",
                "description": "<p>Registered investment advisor &amp; wealth manager.</p>",
                "relatedLinkOne": "https://www.kkr.com/news/beacon",
                "relatedLinkOneTitle": "KKR Invests in Beacon Pointe",
                "relatedLinkTwo": None,
                "relatedLinkTwoTitle": None
            },
            {
                "name": "ON*NET Fibra",
                "sortingName": "onnet fibra",
                "logo": "/content/dam/kkr/portfolio/onnet.png",
                "hq": "Santiago, Chile",
                "region": "Americas",
                "assetClass": "Infrastructure, Private Equity",
                "industry": "Telecommunications",
                "yoi": 2021,
                "url": "https://onnetfibra.cl",
                "description": "Fiber network"
            }
        ]
    }


PassPlan = Dict[int, Union[List[RawPortfolioCompany], Exception]]


class FakePortfolioClient:
    """
    Scripted stand-in for PortfolioAPIClient.

    ``passes`` holds one plan per accumulation pass, mapping page number to the
    records returned (or an exception raised). Fetching page 1 moves to the
    next plan; the last plan repeats once they run out.
    """

    endpoint_url = FAKE_ENDPOINT

    def __init__(self, passes: List[PassPlan], total: int, pages: int):
        self.passes = passes
        self.total = total
        self.pages = pages
        self.pass_index = -1
        self.calls: List[int] = []

    async def fetch_page(self, page_number: int) -> PageResult:
        self.calls.append(page_number)
        if page_number == 1:
            self.pass_index = min(self.pass_index + 1, len(self.passes) - 1)

        outcome = self.passes[self.pass_index].get(page_number, [])
        if isinstance(outcome, Exception):
            raise outcome
        return PageResult(
            page_number=page_number,
            total_reported=self.total,
            pages_reported=self.pages,
            records=list(outcome),
        )


def paginate(records: List[RawPortfolioCompany], page_size: int = 15,
             drop: Optional[set] = None) -> PassPlan:
    """Split records into a pass plan, optionally dropping some by name"""
    drop = drop or set()
    plan = {}
    for start in range(0, len(records), page_size):
        page_number = start // page_size + 1
        plan[page_number] = [r for r in records[start:start + page_size] if r.name not in drop]
    return plan


@pytest.fixture
def fake_client():
    return FakePortfolioClient


@pytest.fixture
def make_pass_plan():
    return paginate
