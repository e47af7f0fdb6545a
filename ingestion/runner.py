"""
Portfolio ingestion orchestrator.

Drives one run end to end:
- Create the run record (RUNNING, zero counters)
- Accumulate the full dataset over one or more passes
- Normalize and upsert every unique company, isolating per-record failures
- Finalize the run as COMPLETED or FAILED and return a structured result

ingest_all never raises. Systemic failures (source unavailable, database
down) mark the run FAILED and still produce an IngestionResult.
"""

import logging
import time
from datetime import datetime
from typing import Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import IngestionException, NormalizationError
from ingestion.accumulator import AccumulationResult, PortfolioAccumulator
from ingestion.extractors.portfolio_api import PortfolioAPIClient
from ingestion.loaders.company_loader import CompanyLoader
from ingestion.run_tracker import IngestionRunTracker, RunHandle
from ingestion.transformers.normalizer import normalize
from models.base import RunStatus
from schemas.company import RawPortfolioCompany
from schemas.ingestion import IngestionResult

logger = logging.getLogger(__name__)


class PortfolioIngestRunner:
    """
    Orchestrate Accumulate -> Normalize -> Upsert for the portfolio source.

    Collaborators are injectable for tests; by default the runner owns a
    PortfolioAPIClient for the duration of one run and closes it afterwards.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        client: Optional[PortfolioAPIClient] = None,
        accumulator: Optional[PortfolioAccumulator] = None,
        loader: Optional[CompanyLoader] = None,
        tracker: Optional[IngestionRunTracker] = None,
        list_url: Optional[str] = None
    ):
        self.db = db_session
        self.client = client
        self.accumulator = accumulator
        self.loader = loader or CompanyLoader(db_session)
        self.tracker = tracker or IngestionRunTracker(db_session)
        self.list_url = list_url or settings.PORTFOLIO_LIST_URL

    async def ingest_all(self) -> IngestionResult:
        """
        Run one complete ingestion.

        Returns:
            IngestionResult with status "completed" or "failed"
        """
        if self.client is not None or self.accumulator is not None:
            return await self._ingest(self.client)

        async with PortfolioAPIClient() as client:
            return await self._ingest(client)

    async def _ingest(self, client: Optional[PortfolioAPIClient]) -> IngestionResult:
        started = time.perf_counter()
        endpoint = self._endpoint_of(client)
        handle = self.tracker.new_handle(list_url=self.list_url, endpoint_used=endpoint)
        upserted: Set[str] = set()

        logger.info(f"Starting portfolio ingestion run {handle.run_id}")

        try:
            await self.tracker.start(handle)

            # --------------------------------------------------
            # PHASE 1: ACCUMULATION
            # --------------------------------------------------
            accumulator = self.accumulator or PortfolioAccumulator(client)
            accumulation = await accumulator.fetch_all()

            await self.tracker.record_source_meta(
                handle,
                total_from_source=accumulation.total_reported,
                pages_from_source=accumulation.pages_reported,
                accumulation_attempts=accumulation.attempts,
                fetched=len(accumulation.records),
            )
            logger.info(
                f"Accumulated {len(accumulation.records)}/{accumulation.total_reported} companies "
                f"in {accumulation.attempts} pass(es)"
            )

            # --------------------------------------------------
            # PHASE 2: NORMALIZE + UPSERT
            # --------------------------------------------------
            await self._process_records(handle, accumulation, endpoint, upserted)

            # --------------------------------------------------
            # PHASE 3: FINALIZE
            # --------------------------------------------------
            await self.tracker.finish(
                handle, RunStatus.COMPLETED, duration_ms=self._elapsed_ms(started)
            )

        except Exception as e:
            if isinstance(e, IngestionException):
                logger.error(f"Ingestion run {handle.run_id} failed: {e.message}",
                             extra={"error_context": e.to_dict()})
            else:
                logger.exception(f"Unexpected error in ingestion run {handle.run_id}")
            await self._fail(handle, e, started)

        result = self._build_result(handle, upserted)
        logger.info(
            f"Ingestion run {result.run_id} {result.status}: "
            f"fetched={result.counts.fetched}, created={result.counts.created}, "
            f"updated={result.counts.updated}, failed={result.counts.failed}, "
            f"complete={result.is_complete}, {result.duration_ms}ms"
        )
        return result

    async def _process_records(
        self,
        handle: RunHandle,
        accumulation: AccumulationResult,
        endpoint: str,
        upserted: Set[str]
    ):
        fetched_at = datetime.utcnow()

        for raw in accumulation.records:
            try:
                record = self._normalize(raw, endpoint, fetched_at)
                outcome = await self.loader.upsert(record)
            except Exception as e:
                logger.warning(f"Failed to ingest company {raw.name!r}: {e}")
                await self.tracker.record_failure(handle, f"{raw.name}: {e}")
                continue

            upserted.add(outcome.company_id)
            if outcome.created:
                handle.counts.created += 1
            elif outcome.updated:
                handle.counts.updated += 1

    def _normalize(self, raw: RawPortfolioCompany, endpoint: str, fetched_at: datetime):
        try:
            return normalize(
                raw,
                source_endpoint=endpoint,
                source_list_url=self.list_url,
                fetched_at=fetched_at,
            )
        except Exception as e:
            raise NormalizationError(
                "Failed to normalize company",
                context={"company_name": raw.name},
                original_exception=e
            )

    async def _fail(self, handle: RunHandle, error: Exception, started: float):
        """Mark the run failed; bookkeeping errors here are logged, never raised"""
        if handle.is_finished:
            return
        try:
            await self.tracker.finish(
                handle,
                RunStatus.FAILED,
                duration_ms=self._elapsed_ms(started),
                fatal_error=str(error),
            )
        except Exception as tracking_error:
            logger.error(f"Could not mark run {handle.run_id} as failed: {tracking_error}")
            # Keep the in-memory handle consistent with the returned result
            handle.status = RunStatus.FAILED
            handle.finished_at = handle.finished_at or datetime.utcnow()
            handle.duration_ms = handle.duration_ms or self._elapsed_ms(started)

    def _build_result(self, handle: RunHandle, upserted: Set[str]) -> IngestionResult:
        meta = handle.source_meta
        return IngestionResult(
            run_id=handle.run_id,
            status=handle.status.value,
            counts=handle.counts.model_copy(),
            source_meta=meta.model_copy(),
            duration_ms=handle.duration_ms or 0,
            unique_this_run=len(upserted),
            is_complete=(
                handle.totals_known
                and handle.counts.fetched >= meta.total_from_source
            ),
        )

    def _endpoint_of(self, client: Optional[PortfolioAPIClient]) -> str:
        if client is not None:
            return getattr(client, "endpoint_url", settings.PORTFOLIO_API_URL)
        accumulator_client = getattr(self.accumulator, "client", None)
        return getattr(accumulator_client, "endpoint_url", settings.PORTFOLIO_API_URL)

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)
