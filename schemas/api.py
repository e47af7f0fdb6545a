"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from schemas.company import CompanyResponse
from schemas.ingestion import IngestionRunResponse


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    database_connected: bool
    last_run: Optional[IngestionRunResponse] = None
    status: str = Field("healthy", description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    @validator("status", pre=True, always=True)
    def determine_status(cls, v, values):
        """Determine overall health status"""
        if not values.get("database_connected", False):
            return "unhealthy"

        last_run = values.get("last_run")
        if last_run is None:
            return "healthy"  # Nothing ingested yet

        if last_run.status == "failed":
            return "degraded"
        return "healthy"

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2026-02-07T10:30:00Z",
                "database_connected": True,
                "last_run": {
                    "run_id": "550e8400-e29b-41d4-a716-446655440000",
                    "status": "completed",
                    "started_at": "2026-02-07T03:00:00Z",
                    "finished_at": "2026-02-07T03:00:14Z",
                    "records_fetched": 296
                }
            }
        }


# ============================================================================
# Company Query Schemas
# ============================================================================

class PaginationMetadata(BaseModel):
    """Pagination metadata"""
    total_items: int
    total_pages: int
    current_page: int
    page_size: int
    has_next: bool
    has_previous: bool


class CompaniesResponse(BaseModel):
    """Paginated company list response"""
    items: List[CompanyResponse]
    pagination: PaginationMetadata
    filters_applied: Dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Statistics Schemas
# ============================================================================

class StatsResponse(BaseModel):
    """Aggregated counts over the stored portfolio"""
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    total_companies: int
    by_asset_class: Dict[str, int]
    by_industry: Dict[str, int]
    by_region: Dict[str, int]

    class Config:
        json_schema_extra = {
            "example": {
                "timestamp": "2026-02-07T10:30:00Z",
                "total_companies": 296,
                "by_asset_class": {"Private Equity": 180, "Infrastructure": 70},
                "by_industry": {"Financials": 40, "Technology": 38},
                "by_region": {"Americas": 150, "Europe": 80, "Asia Pacific": 66}
            }
        }



# ============================================================================
# Admin Schemas
# ============================================================================

class DeleteCompaniesResponse(BaseModel):
    """Result of wiping the stored portfolio"""
    deleted: int
    message: str
