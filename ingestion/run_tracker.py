"""
Ingestion run bookkeeping.

The orchestrator owns an explicit RunHandle for the run in progress and passes
it to the tracker whenever counters, source metadata or error samples change.
The tracker mirrors the handle into the ingestion_runs table with UPDATE
statements keyed by run_id, so a rollback of a failed company upsert on the
shared session never discards run state.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import RunTrackingError
from models.base import RunStatus
from models.ingestion_run import IngestionRun
from schemas.ingestion import IngestionCounts, SourceMeta
import logging

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 500


@dataclass
class RunHandle:
    """In-memory state of one ingestion run"""
    run_id: str
    list_url: str
    endpoint_used: str
    started_at: datetime
    status: RunStatus = RunStatus.RUNNING
    counts: IngestionCounts = field(default_factory=IngestionCounts)
    source_meta: SourceMeta = field(default_factory=SourceMeta)
    error_samples: List[str] = field(default_factory=list)
    finished_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    totals_known: bool = False  # set once the source reported hits/pages

    @property
    def is_finished(self) -> bool:
        return self.finished_at is not None


class IngestionRunTracker:
    """
    Create, update and finalize IngestionRun rows.

    Responsibilities:
    - Start a run (status RUNNING, zero counters)
    - Record source metadata and per-record failures as they happen
    - Keep error samples capped, evicting the oldest
    - Finalize exactly once; finished runs are read-only
    """

    def __init__(
        self,
        db_session: AsyncSession,
        error_sample_limit: Optional[int] = None
    ):
        self.db = db_session
        self.error_sample_limit = error_sample_limit or settings.ERROR_SAMPLE_LIMIT

    @staticmethod
    def new_handle(list_url: str, endpoint_used: str) -> RunHandle:
        return RunHandle(
            run_id=str(uuid.uuid4()),
            list_url=list_url,
            endpoint_used=endpoint_used,
            started_at=datetime.utcnow(),
        )

    async def start(self, handle: RunHandle) -> RunHandle:
        """Persist a new RUNNING run"""
        self._ensure_open(handle)
        try:
            await self.db.execute(insert(IngestionRun).values(
                run_id=handle.run_id,
                status=handle.status,
                started_at=handle.started_at,
                list_url=handle.list_url,
                endpoint_used=handle.endpoint_used,
                records_fetched=0,
                records_created=0,
                records_updated=0,
                records_failed=0,
                error_samples=[],
                total_from_source=0,
                pages_from_source=0,
                accumulation_attempts=0,
            ))
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            raise RunTrackingError(
                "Failed to create ingestion run",
                context={"run_id": handle.run_id, "operation": "start"},
                original_exception=e
            )

        logger.info(f"Created ingestion run: {handle.run_id}")
        return handle

    async def record_source_meta(
        self,
        handle: RunHandle,
        total_from_source: int,
        pages_from_source: int,
        accumulation_attempts: int,
        fetched: int
    ):
        """Store what the source reported once accumulation is done"""
        self._ensure_open(handle)
        handle.source_meta = SourceMeta(
            total_from_source=total_from_source,
            pages_from_source=pages_from_source,
            accumulation_attempts=accumulation_attempts,
        )
        handle.totals_known = True
        handle.counts.fetched = fetched
        await self._persist(handle, "record_source_meta")

    async def record_failure(self, handle: RunHandle, message: str):
        """Count one failed company and keep a sample of its error"""
        self._ensure_open(handle)
        handle.counts.failed += 1
        self._append_error(handle, message)
        await self._persist(handle, "record_failure")

    async def finish(
        self,
        handle: RunHandle,
        status: RunStatus,
        duration_ms: int,
        fatal_error: Optional[str] = None
    ):
        """Finalize the run; later calls on this handle raise RunTrackingError"""
        self._ensure_open(handle)
        if fatal_error:
            self._append_error(handle, f"Fatal: {fatal_error}")
        handle.status = status
        handle.finished_at = datetime.utcnow()
        handle.duration_ms = duration_ms
        await self._persist(handle, "finish")

    async def latest(self) -> Optional[IngestionRun]:
        """Most recently started run"""
        result = await self.db.execute(
            select(IngestionRun).order_by(IngestionRun.started_at.desc()).limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def recent(self, limit: int = 10) -> List[IngestionRun]:
        """Run history, most recent first"""
        result = await self.db.execute(
            select(IngestionRun).order_by(IngestionRun.started_at.desc()).limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    def _append_error(self, handle: RunHandle, message: str):
        handle.error_samples.append(message[:MAX_ERROR_LENGTH])
        if len(handle.error_samples) > self.error_sample_limit:
            del handle.error_samples[:-self.error_sample_limit]

    @staticmethod
    def _ensure_open(handle: RunHandle):
        if handle.is_finished:
            raise RunTrackingError(
                "Ingestion run is already finished",
                context={"run_id": handle.run_id, "status": handle.status.value}
            )

    async def _persist(self, handle: RunHandle, operation: str):
        try:
            await self.db.execute(
                update(IngestionRun)
                .where(
                    IngestionRun.run_id == handle.run_id,
                    IngestionRun.finished_at.is_(None)
                )
                .values(
                    status=handle.status,
                    finished_at=handle.finished_at,
                    duration_ms=handle.duration_ms,
                    records_fetched=handle.counts.fetched,
                    records_created=handle.counts.created,
                    records_updated=handle.counts.updated,
                    records_failed=handle.counts.failed,
                    error_samples=list(handle.error_samples),
                    total_from_source=handle.source_meta.total_from_source,
                    pages_from_source=handle.source_meta.pages_from_source,
                    accumulation_attempts=handle.source_meta.accumulation_attempts,
                )
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            raise RunTrackingError(
                "Failed to update ingestion run",
                context={"run_id": handle.run_id, "operation": operation},
                original_exception=e
            )
