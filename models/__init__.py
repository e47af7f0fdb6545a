"""
SQLAlchemy ORM models for database tables.

Models:
    base: Base declarative class, the portable JSON column type and RunStatus
    company: Normalized portfolio companies keyed by derived identity
    ingestion_run: One row per ingestion execution (audit history)

Database Schema:
    All models inherit from the Base declarative class. JSON columns map to
    JSONB on PostgreSQL and plain JSON on other dialects.

Usage:
    from models.company import PortfolioCompany
    from models.ingestion_run import IngestionRun
    from models.base import RunStatus
"""

from models.base import Base, RunStatus
from models.company import PortfolioCompany
from models.ingestion_run import IngestionRun

__all__ = [
    "Base",
    "RunStatus",
    "PortfolioCompany",
    "IngestionRun",
]
