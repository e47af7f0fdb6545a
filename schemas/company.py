"""
Pydantic schemas for raw and normalized portfolio companies
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Any
from datetime import datetime


class RawPortfolioCompany(BaseModel):
    """
    One company as returned by the upstream portfolio API.

    The upstream is duck-typed: fields come and go between responses. Every
    field therefore defaults to the empty string, None and scalar values are
    coerced to strings, and unknown keys are ignored. Only name and hq feed
    the identity key; they are required in practice but default to empty
    rather than failing the record.
    """

    name: str = ""
    sorting_name: str = Field("", alias="sortingName")  # depends on sort parameter, never stored
    logo: str = ""
    hq: str = ""
    region: str = ""
    asset_class: str = Field("", alias="assetClass")  # may be comma-separated
    industry: str = ""
    yoi: str = ""
    url: str = ""
    description: str = ""  # contains HTML markup

    related_link_one: str = Field("", alias="relatedLinkOne")
    related_link_one_title: str = Field("", alias="relatedLinkOneTitle")
    # Sometimes an opaque content id rather than a URL
    related_link_two: str = Field("", alias="relatedLinkTwo")
    related_link_two_title: str = Field("", alias="relatedLinkTwoTitle")

    @validator("*", pre=True)
    def coerce_to_string(cls, v: Any) -> str:
        """Treat missing values as empty and scalars as their string form"""
        if v is None:
            return ""
        if isinstance(v, str):
            return v
        if isinstance(v, (int, float, bool)):
            return str(v)
        return ""

    class Config:
        populate_by_name = True
        extra = "ignore"


class RelatedLink(BaseModel):
    """An opaque related-link pair; url is not validated"""
    url: Optional[str] = None
    title: Optional[str] = None


class CompanyUpsert(BaseModel):
    """
    Normalized company ready for the upsert store.

    Produced by ingestion.transformers.normalizer.normalize; field names match
    the PortfolioCompany columns one to one.
    """

    # Identity and change detection
    company_id: str
    content_hash: str

    # Core fields
    name: str
    name_sort: str
    asset_class_raw: str = ""
    asset_classes: List[str] = Field(default_factory=list)
    industry: str = ""
    region: str = ""

    # Optional enrichment
    description_html: Optional[str] = None
    description_text: Optional[str] = None
    website: Optional[str] = None
    headquarters: Optional[str] = None
    year_of_investment: Optional[str] = None
    logo_path: Optional[str] = None
    logo_url: Optional[str] = None
    related_links: List[RelatedLink] = Field(default_factory=list)

    # Provenance
    source_list_url: str
    source_endpoint: str
    fetched_at: datetime

    def column_values(self) -> dict:
        """Values for the PortfolioCompany row"""
        return self.model_dump(mode="python")


class CompanyResponse(BaseModel):
    """Schema for API responses"""
    company_id: str
    name: str
    asset_classes: List[str]
    industry: str
    region: str
    description_text: Optional[str] = None
    description_html: Optional[str] = None
    website: Optional[str] = None
    headquarters: Optional[str] = None
    year_of_investment: Optional[str] = None
    logo_url: Optional[str] = None
    related_links: List[RelatedLink] = Field(default_factory=list)
    source_list_url: str
    fetched_at: datetime
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "company_id": "3f9a1c0e5b7d4e2f8a6c1b0d9e7f5a3c",
                "name": "Beacon Pointe Advisors",
                "asset_classes": ["Private Equity"],
                "industry": "Financials",
                "region": "Americas",
                "description_text": "Beacon Pointe is a registered investment advisor.",
                "website": "https://www.beaconpointe.com",
                "headquarters": "Newport Beach, CA",
                "year_of_investment": "2021",
                "logo_url": "https://www.kkr.com/content/dam/kkr/portfolio/beacon.png",
                "related_links": [
                    {"url": "https://www.kkr.com/news/beacon", "title": "KKR Invests in Beacon Pointe"}
                ],
                "source_list_url": "https://www.kkr.com/invest/portfolio",
                "fetched_at": "2026-02-07T16:08:21Z",
                "created_at": "2026-02-07T16:08:21Z",
                "updated_at": "2026-02-07T16:08:21Z"
            }
        }
