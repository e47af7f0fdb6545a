"""
Pydantic schemas for ingestion run results and history
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class IngestionCounts(BaseModel):
    """Per-outcome counters for one run"""
    fetched: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0


class SourceMeta(BaseModel):
    """What the upstream reported, and how many passes it took"""
    total_from_source: int = 0
    pages_from_source: int = 0
    accumulation_attempts: int = 0


class IngestionResult(BaseModel):
    """Structured outcome of PortfolioIngestRunner.ingest_all"""
    run_id: str
    status: str = Field(..., description="completed or failed")
    counts: IngestionCounts
    source_meta: SourceMeta
    duration_ms: int
    unique_this_run: int = Field(
        0, description="Distinct companies upserted without error in this run"
    )
    is_complete: bool = Field(
        False, description="Whether every company reported by the source was collected"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "run_id": "550e8400-e29b-41d4-a716-446655440000",
                "status": "completed",
                "counts": {"fetched": 296, "created": 290, "updated": 6, "failed": 0},
                "source_meta": {
                    "total_from_source": 296,
                    "pages_from_source": 20,
                    "accumulation_attempts": 2
                },
                "duration_ms": 12500,
                "unique_this_run": 296,
                "is_complete": True
            }
        }


class IngestionRunResponse(BaseModel):
    """One row of ingestion history"""
    run_id: str
    status: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    records_fetched: int = 0
    records_created: int = 0
    records_updated: int = 0
    records_failed: int = 0
    error_samples: List[str] = Field(default_factory=list)
    total_from_source: int = 0
    pages_from_source: int = 0
    accumulation_attempts: int = 0

    @classmethod
    def from_orm(cls, run):
        """Flatten the status enum to its value"""
        return cls(
            run_id=run.run_id,
            status=run.status.value if hasattr(run.status, "value") else str(run.status),
            started_at=run.started_at,
            finished_at=run.finished_at,
            duration_ms=run.duration_ms,
            records_fetched=run.records_fetched or 0,
            records_created=run.records_created or 0,
            records_updated=run.records_updated or 0,
            records_failed=run.records_failed or 0,
            error_samples=list(run.error_samples or []),
            total_from_source=run.total_from_source or 0,
            pages_from_source=run.pages_from_source or 0,
            accumulation_attempts=run.accumulation_attempts or 0,
        )
