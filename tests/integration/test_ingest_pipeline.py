"""
End-to-end ingestion against a scripted source and an in-memory database
"""

import pytest
from unittest.mock import AsyncMock
from sqlalchemy import select, func, text
from ingestion.accumulator import PortfolioAccumulator
from ingestion.loaders.company_loader import CompanyLoader
from ingestion.retry import RetryPolicy
from ingestion.run_tracker import IngestionRunTracker
from ingestion.runner import PortfolioIngestRunner
from models.base import RunStatus
from models.company import PortfolioCompany
from core.exceptions import RetryExhaustedError, UpsertError


def make_runner(session, client, max_attempts=5, loader=None):
    sleep = AsyncMock()
    accumulator = PortfolioAccumulator(
        client,
        pass_policy=RetryPolicy(max_attempts=max_attempts, base_delay=2.0, max_delay=10.0,
                                linear=True, sleep=sleep),
        page_delay=0.0,
        sleep=sleep,
    )
    return PortfolioIngestRunner(session, accumulator=accumulator, loader=loader)


async def count_companies(session) -> int:
    result = await session.execute(select(func.count()).select_from(PortfolioCompany))
    return result.scalar()


class TestIngestPipeline:

    @pytest.mark.asyncio
    async def test_full_run_converges_and_completes(self, db_session, make_raw, fake_client, make_pass_plan):
        companies = [make_raw(f"Company {i:03d}") for i in range(296)]
        missing = {companies[i].name for i in range(0, 296, 20)}
        client = fake_client(
            [make_pass_plan(companies, drop=missing), make_pass_plan(companies)],
            total=296,
            pages=20,
        )

        result = await make_runner(db_session, client).ingest_all()

        assert result.status == "completed"
        assert result.is_complete is True
        assert result.counts.fetched == 296
        assert result.counts.created == 296
        assert result.counts.updated == 0
        assert result.counts.failed == 0
        assert result.unique_this_run == 296
        assert result.source_meta.total_from_source == 296
        assert result.source_meta.pages_from_source == 20
        assert result.source_meta.accumulation_attempts == 2
        assert await count_companies(db_session) == 296

        run = await IngestionRunTracker(db_session).latest()
        assert run.run_id == result.run_id
        assert run.status == RunStatus.COMPLETED
        assert run.records_created == 296
        assert run.endpoint_used == client.endpoint_url

    @pytest.mark.asyncio
    async def test_replay_is_zero_churn(self, db_session, make_raw, fake_client, make_pass_plan):
        companies = [make_raw(f"Company {i:02d}") for i in range(30)]
        plan = make_pass_plan(companies)

        first = await make_runner(db_session, fake_client([plan], total=30, pages=2)).ingest_all()
        second = await make_runner(db_session, fake_client([plan], total=30, pages=2)).ingest_all()

        assert first.counts.created == 30
        assert second.status == "completed"
        assert second.counts.created == 0
        assert second.counts.updated == 0
        assert second.unique_this_run == 30
        assert second.run_id != first.run_id
        assert await count_companies(db_session) == 30

    @pytest.mark.asyncio
    async def test_one_failing_record_does_not_abort_the_run(self, db_session, make_raw, fake_client):
        companies = [make_raw(f"Company {i}") for i in range(5)]
        client = fake_client([{1: companies}], total=5, pages=1)

        loader = CompanyLoader(db_session)
        real_upsert = loader.upsert

        async def flaky_upsert(record):
            if record.name == "Company 2":
                raise UpsertError("constraint violated", context={"company_id": record.company_id})
            return await real_upsert(record)

        loader.upsert = flaky_upsert

        result = await make_runner(db_session, client, loader=loader).ingest_all()

        assert result.status == "completed"
        assert result.counts.failed == 1
        assert result.counts.created == 4
        assert result.unique_this_run == 4
        assert await count_companies(db_session) == 4

        run = await IngestionRunTracker(db_session).latest()
        assert run.records_failed == 1
        assert run.error_samples[0].startswith("Company 2: ")

    @pytest.mark.asyncio
    async def test_identity_collision_updates_instead_of_duplicating(self, db_session, make_raw, fake_client):
        original = make_raw("Acme", hq="Austin, TX", industry="Technology", yoi="2019")
        # Same name + hq, every other field different
        colliding = make_raw("ACME", hq="austin, tx", industry="Industrials", yoi="2024",
                             logo="/other.png", url="acme.io", description="Different")

        first = await make_runner(db_session, fake_client([{1: [original]}], total=1, pages=1)).ingest_all()
        second = await make_runner(db_session, fake_client([{1: [colliding]}], total=1, pages=1)).ingest_all()

        assert first.counts.created == 1
        assert second.counts.created == 0
        assert second.counts.updated == 1
        assert await count_companies(db_session) == 1

        stored = (await db_session.execute(select(PortfolioCompany))).scalar_one()
        assert stored.industry == "Industrials"
        assert stored.website == "https://acme.io"

    @pytest.mark.asyncio
    async def test_source_unavailable_marks_run_failed(self, db_session, fake_client):
        client = fake_client([{1: RetryExhaustedError("page 1 down")}], total=0, pages=0)

        result = await make_runner(db_session, client, max_attempts=2).ingest_all()

        assert result.status == "failed"
        assert result.is_complete is False
        assert result.counts.fetched == 0
        assert result.source_meta.accumulation_attempts == 0

        run = await IngestionRunTracker(db_session).latest()
        assert run.status == RunStatus.FAILED
        assert run.finished_at is not None
        assert run.error_samples[-1].startswith("Fatal: ")

    @pytest.mark.asyncio
    async def test_incomplete_accumulation_still_completes(self, db_session, make_raw, fake_client):
        companies = [make_raw(f"Company {i}") for i in range(8)]
        client = fake_client([{1: companies}], total=10, pages=1)

        result = await make_runner(db_session, client, max_attempts=2).ingest_all()

        assert result.status == "completed"
        assert result.is_complete is False
        assert result.counts.fetched == 8
        assert result.source_meta.total_from_source == 10
        assert result.source_meta.accumulation_attempts == 2

    @pytest.mark.asyncio
    async def test_tracking_failure_is_reported_not_raised(self, db_session, make_raw, fake_client):
        client = fake_client([{1: [make_raw("Acme")]}], total=1, pages=1)
        tracker = IngestionRunTracker(db_session)
        tracker.start = AsyncMock(side_effect=RuntimeError("database unavailable"))

        runner = make_runner(db_session, client)
        runner.tracker = tracker
        result = await runner.ingest_all()

        assert result.status == "failed"
        assert result.counts.created == 0

    @pytest.mark.asyncio
    async def test_empty_source_is_complete(self, db_session, fake_client):
        client = fake_client([{1: []}], total=0, pages=1)

        result = await make_runner(db_session, client).ingest_all()

        assert result.status == "completed"
        assert result.counts.fetched == 0
        assert result.source_meta.total_from_source == 0
        assert result.is_complete is True

    @pytest.mark.asyncio
    async def test_store_rejection_rolls_back_only_that_company(self, db_session, make_raw, fake_client):
        # The database itself refuses one company, so the real upsert path fails
        await db_session.execute(text(
            "CREATE TRIGGER reject_company BEFORE INSERT ON portfolio_companies "
            "WHEN NEW.name = 'Company 2' "
            "BEGIN SELECT RAISE(ABORT, 'company rejected by store'); END"
        ))
        await db_session.commit()

        companies = [make_raw(f"Company {i}") for i in range(5)]
        client = fake_client([{1: companies}], total=5, pages=1)

        result = await make_runner(db_session, client).ingest_all()

        assert result.status == "completed"
        assert result.is_complete is True
        assert result.counts.fetched == 5
        assert result.counts.created == 4
        assert result.counts.failed == 1
        assert result.unique_this_run == 4

        names = (await db_session.execute(
            select(PortfolioCompany.name).order_by(PortfolioCompany.name)
        )).scalars().all()
        assert names == ["Company 0", "Company 1", "Company 3", "Company 4"]

        run = await IngestionRunTracker(db_session).latest()
        assert run.status == RunStatus.COMPLETED
        assert run.records_fetched == 5
        assert run.records_created == 4
        assert run.records_failed == 1
        assert run.error_samples[0].startswith("Company 2: UpsertError")
        assert "company rejected by store" in run.error_samples[0]
