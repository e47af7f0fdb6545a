from sqlalchemy import Column, String, Text, DateTime, Index
from datetime import datetime
from models.base import Base, JSONType


class PortfolioCompany(Base):
    """
    One portfolio company, keyed by a derived identity.

    The upstream API has no native identifier, so company_id is a hash of
    name + headquarters (see ingestion.transformers.identity). content_hash
    covers every business field and is compared before any update so an
    unchanged company costs zero writes.

    Field Mapping (upstream -> column):
    - name -> name, name_sort (lowercased)
    - assetClass -> asset_class_raw, asset_classes (split on commas)
    - industry -> industry
    - region -> region
    - description -> description_html, description_text (tags stripped)
    - url -> website (scheme added when missing)
    - hq -> headquarters
    - yoi -> year_of_investment
    - logo -> logo_path, logo_url (absolute)
    - relatedLinkOne/Two (+ titles) -> related_links (opaque url/title pairs)
    """
    __tablename__ = "portfolio_companies"

    company_id = Column(String(32), primary_key=True)

    # Core fields
    name = Column(String(500), nullable=False)
    name_sort = Column(String(500), nullable=False, index=True)
    asset_class_raw = Column(String(500), nullable=False, default="")
    asset_classes = Column(JSONType, nullable=False, default=list)
    industry = Column(String(200), nullable=False, default="", index=True)
    region = Column(String(200), nullable=False, default="", index=True)

    # Optional enrichment
    description_html = Column(Text, nullable=True)
    description_text = Column(Text, nullable=True)
    website = Column(String(2048), nullable=True)
    headquarters = Column(String(500), nullable=True)
    year_of_investment = Column(String(50), nullable=True)
    logo_path = Column(String(2048), nullable=True)
    logo_url = Column(String(2048), nullable=True)
    related_links = Column(JSONType, nullable=False, default=list)

    # Change detection
    content_hash = Column(String(32), nullable=False)

    # Provenance
    source_list_url = Column(String(2048), nullable=False)
    source_endpoint = Column(String(2048), nullable=False)
    fetched_at = Column(DateTime, nullable=False)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_company_industry_region", "industry", "region"),
    )
