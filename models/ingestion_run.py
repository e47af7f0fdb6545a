from sqlalchemy import Column, String, Enum, DateTime, Integer, Index
from datetime import datetime
from models.base import Base, JSONType, RunStatus


class IngestionRun(Base):
    """
    Tracks one execution of the portfolio ingestion.

    Purpose:
    - Audit trail of when data was last refreshed
    - Verifying the fetched count matches the source total
    - Debugging failed runs through a capped sample of error messages

    A run is created as RUNNING and finalized exactly once; rows with
    finished_at set are never updated again.
    """
    __tablename__ = "ingestion_runs"

    run_id = Column(String(36), primary_key=True)

    status = Column(Enum(RunStatus), default=RunStatus.RUNNING, nullable=False)

    # Timestamps
    started_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    finished_at = Column(DateTime, nullable=True)
    duration_ms = Column(Integer, nullable=True)

    # Counts
    records_fetched = Column(Integer, nullable=False, default=0)
    records_created = Column(Integer, nullable=False, default=0)
    records_updated = Column(Integer, nullable=False, default=0)
    records_failed = Column(Integer, nullable=False, default=0)

    # Capped sample of error messages, oldest evicted first
    error_samples = Column(JSONType, nullable=False, default=list)

    # Source metadata
    list_url = Column(String(2048), nullable=False)
    endpoint_used = Column(String(2048), nullable=False)
    total_from_source = Column(Integer, nullable=False, default=0)
    pages_from_source = Column(Integer, nullable=False, default=0)
    accumulation_attempts = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("idx_ingestion_run_started", "started_at"),
        Index("idx_ingestion_run_status", "status", "started_at"),
    )
