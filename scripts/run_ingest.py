"""
Run one portfolio ingestion and print a summary.

Exits 0 when the run completed, 1 otherwise.
"""

import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.database import async_session_maker, engine
from core.logging import setup_logging
from ingestion.runner import PortfolioIngestRunner
from schemas.ingestion import IngestionResult

logger = logging.getLogger(__name__)


def print_summary(result: IngestionResult):
    counts = result.counts
    meta = result.source_meta

    print("=" * 60)
    print(f"Run ID:            {result.run_id}")
    print(f"Status:            {result.status}")
    print(f"Duration:          {result.duration_ms / 1000:.1f}s")
    print(f"Source total:      {meta.total_from_source} companies / {meta.pages_from_source} pages")
    print(f"Passes:            {meta.accumulation_attempts}")
    print(f"Fetched:           {counts.fetched}")
    print(f"Created:           {counts.created}")
    print(f"Updated:           {counts.updated}")
    print(f"Unchanged:         {result.unique_this_run - counts.created - counts.updated}")
    print(f"Failed:            {counts.failed}")
    print("=" * 60)

    if counts.fetched != meta.total_from_source:
        logger.warning(
            f"Fetched {counts.fetched} companies but the source reports "
            f"{meta.total_from_source}; the dataset may be incomplete"
        )


async def run_ingest() -> int:
    try:
        async with async_session_maker() as session:
            result = await PortfolioIngestRunner(session).ingest_all()
    finally:
        await engine.dispose()

    print_summary(result)
    return 0 if result.status == "completed" else 1


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(run_ingest()))
