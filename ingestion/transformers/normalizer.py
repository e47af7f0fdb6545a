"""
Transform raw portfolio companies into the normalized upsert schema
"""

import re
from datetime import datetime
from typing import List, Optional
from urllib.parse import urljoin

from core.config import settings
from ingestion.transformers.identity import derive_fingerprint, derive_identity
from schemas.company import CompanyUpsert, RawPortfolioCompany, RelatedLink

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")

# Only the entities the upstream actually emits
_HTML_ENTITIES = (
    ("&nbsp;", " "),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&amp;", "&"),  # last, so "&amp;lt;" decodes to "&lt;" and not "<"
)


def strip_html(html: Optional[str]) -> Optional[str]:
    """Remove tags, decode a fixed set of entities and collapse whitespace"""
    if not html:
        return None
    text = _TAG_RE.sub("", html)
    for entity, replacement in _HTML_ENTITIES:
        text = text.replace(entity, replacement)
    text = _WHITESPACE_RE.sub(" ", text).strip()
    return text or None


def normalize_url(url: Optional[str]) -> Optional[str]:
    """Add https:// when the URL has no scheme"""
    if not url or not url.strip():
        return None
    trimmed = url.strip()
    if trimmed.lower().startswith(("http://", "https://")):
        return trimmed
    return f"https://{trimmed}"


def build_logo_url(logo_path: Optional[str], base_url: Optional[str] = None) -> Optional[str]:
    """Resolve the relative logo path against the upstream site"""
    if not logo_path or not logo_path.strip():
        return None
    return urljoin((base_url or settings.LOGO_BASE_URL).rstrip("/") + "/", logo_path.strip())


def split_asset_classes(asset_class_raw: Optional[str]) -> List[str]:
    """Split comma-separated asset classes, dropping empties and keeping order"""
    if not asset_class_raw:
        return []
    return [part.strip() for part in asset_class_raw.split(",") if part.strip()]


def build_related_links(raw: RawPortfolioCompany) -> List[RelatedLink]:
    """
    Keep both related-link slots as opaque pairs.

    The second url slot sometimes holds a content id instead of a URL, so
    neither slot is validated.
    """
    links = []
    for url, title in (
        (raw.related_link_one, raw.related_link_one_title),
        (raw.related_link_two, raw.related_link_two_title),
    ):
        if url or title:
            links.append(RelatedLink(url=url or None, title=title or None))
    return links


def normalize(
    raw: RawPortfolioCompany,
    source_endpoint: str,
    source_list_url: str,
    fetched_at: Optional[datetime] = None,
) -> CompanyUpsert:
    """
    Map one raw company to the normalized schema.

    Total for any RawPortfolioCompany: every optional field that is empty
    upstream becomes None instead of raising.
    """
    return CompanyUpsert(
        company_id=derive_identity(raw),
        content_hash=derive_fingerprint(raw),
        name=raw.name,
        name_sort=raw.name.lower(),
        asset_class_raw=raw.asset_class,
        asset_classes=split_asset_classes(raw.asset_class),
        industry=raw.industry,
        region=raw.region,
        # Optional fields
        description_html=raw.description or None,
        description_text=strip_html(raw.description),
        website=normalize_url(raw.url),
        headquarters=raw.hq or None,
        year_of_investment=raw.yoi or None,
        logo_path=raw.logo or None,
        logo_url=build_logo_url(raw.logo),
        related_links=build_related_links(raw),
        # Provenance
        source_list_url=source_list_url,
        source_endpoint=source_endpoint,
        fetched_at=fetched_at or datetime.utcnow(),
    )
