"""
Identity and change-detection hashes for raw portfolio companies.

The upstream API provides no unique id, so one is derived by hashing a small
set of fields that are always present and jointly unique per company.

Strategy:
- Use: name + headquarters (hq)
- Companies that share a logo across legal entities (e.g. ON*NET Fibra
  Chile vs Colombia) still differ by headquarters

Previously tried and rejected:
1. name + yoi + hq + assetClass + industry: changes whenever any of the
   incidental fields is edited upstream
2. logo path alone: collides for companies that share a logo

The composition is a tunable assumption. Re-run scripts/collision_report.py
against live data before changing IDENTITY_FIELDS.
"""

import hashlib
import json
from collections import defaultdict
from typing import Dict, Iterable, List, Sequence

from schemas.company import RawPortfolioCompany

IDENTITY_FIELDS = ("name", "hq")

HASH_LENGTH = 32

# Every field that carries business meaning. sorting_name is excluded: it
# changes with the sort parameter of the request, not with the company.
FINGERPRINT_FIELDS = (
    "name",
    "asset_class",
    "industry",
    "region",
    "description",
    "url",
    "hq",
    "yoi",
    "logo",
    "related_link_one",
    "related_link_one_title",
    "related_link_two",
    "related_link_two_title",
)


def _sha256(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:HASH_LENGTH]


def identity_key_source(raw: RawPortfolioCompany, fields: Sequence[str] = IDENTITY_FIELDS) -> str:
    """The pre-hash identity key, useful when investigating collisions."""
    return "|".join((getattr(raw, name, "") or "").lower().strip() for name in fields)


def derive_identity(raw: RawPortfolioCompany, fields: Sequence[str] = IDENTITY_FIELDS) -> str:
    """Deterministic company id: 32 hex chars of SHA-256 over the key fields."""
    return _sha256(identity_key_source(raw, fields))


def derive_fingerprint(raw: RawPortfolioCompany) -> str:
    """Content hash over all business fields; used only to skip no-op updates."""
    content = {name: getattr(raw, name, "") or "" for name in FINGERPRINT_FIELDS}
    canonical = json.dumps(content, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return _sha256(canonical)


def find_collisions(
    records: Iterable[RawPortfolioCompany],
    fields: Sequence[str] = IDENTITY_FIELDS,
) -> Dict[str, List[RawPortfolioCompany]]:
    """
    Group records whose identity keys collide.

    Exact duplicates (same identity and same content) are the normal result of
    overlapping pages and are not reported; a collision is two records with the
    same key but different content.

    Returns:
        Mapping of pre-hash key -> distinct records sharing it
    """
    groups: Dict[str, Dict[str, RawPortfolioCompany]] = defaultdict(dict)
    for raw in records:
        groups[identity_key_source(raw, fields)].setdefault(derive_fingerprint(raw), raw)

    return {
        key: list(by_content.values())
        for key, by_content in groups.items()
        if len(by_content) > 1
    }
