"""
Identity collision report against the live portfolio.

Sweeps every upstream page once and keeps each record as returned, then checks
several candidate identity key compositions. A composition is safe when no two
records with different content share a key. Run this before changing
IDENTITY_FIELDS.
"""

import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.logging import setup_logging
from ingestion.extractors.portfolio_api import PortfolioAPIClient
from ingestion.transformers.identity import IDENTITY_FIELDS, find_collisions

logger = logging.getLogger(__name__)

CANDIDATE_KEYS = (
    ("name", "hq"),
    ("name", "logo"),
    ("name", "url"),
    ("logo",),
    ("name", "logo", "hq"),
)


def report(records, candidates=CANDIDATE_KEYS) -> dict:
    """Print collisions per candidate and return {fields: colliding key count}"""
    summary = {}
    for fields in candidates:
        collisions = find_collisions(records, fields)
        summary[tuple(fields)] = len(collisions)

        marker = " (current)" if tuple(fields) == tuple(IDENTITY_FIELDS) else ""
        print(f"\n{' + '.join(fields)}{marker}: {len(collisions)} colliding key(s)")
        for key, group in sorted(collisions.items()):
            print(f"  {key!r}")
            for raw in group:
                print(f"    - {raw.name} | hq={raw.hq} | logo={raw.logo} | url={raw.url}")
    return summary


async def collect_raw_records(client: PortfolioAPIClient) -> list:
    """One full sweep, keeping every record as returned (no deduplication)"""
    first = await client.fetch_page(1)
    records = list(first.records)
    for page_number in range(2, first.pages_reported + 1):
        await asyncio.sleep(settings.PAGE_DELAY_SECONDS)
        try:
            page = await client.fetch_page(page_number)
        except Exception as e:
            logger.warning(f"Skipping page {page_number}: {e}")
            continue
        records.extend(page.records)

    print(f"Collected {len(records)} raw records; source reports {first.total_reported}")
    return records


async def main() -> int:
    async with PortfolioAPIClient() as client:
        records = await collect_raw_records(client)

    summary = report(records)
    return 1 if summary.get(tuple(IDENTITY_FIELDS)) else 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(main()))
