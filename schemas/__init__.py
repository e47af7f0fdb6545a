"""
Pydantic schemas for data validation and serialization.

Schemas:
    company: Raw upstream company, normalized upsert payload, API response
    ingestion: Ingestion result and run history models
    api: Health, pagination, stats and error responses

Usage:
    from schemas.company import RawPortfolioCompany, CompanyUpsert
    from schemas.ingestion import IngestionResult

Example:
    # Parse an upstream record; missing fields become empty strings
    raw = RawPortfolioCompany.model_validate({"name": "Acme", "hq": None})
    assert raw.hq == ""
"""

__all__ = [
    "RawPortfolioCompany",
    "RelatedLink",
    "CompanyUpsert",
    "CompanyResponse",
    "IngestionCounts",
    "SourceMeta",
    "IngestionResult",
    "IngestionRunResponse",
    "HealthCheckResponse",
    "CompaniesResponse",
    "StatsResponse",
]
