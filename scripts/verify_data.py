"""
Verify the stored portfolio against the most recent ingestion run.

Prints a report and exits 0 when every check passes, 1 otherwise.
"""

import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.database import async_session_maker, engine
from core.logging import setup_logging
from ingestion.verification import VerificationReport, verify_data

logger = logging.getLogger(__name__)


def _check(passed: bool) -> str:
    return "OK" if passed else "FAIL"


def print_distribution(title: str, counts: dict):
    print(f"\n{title}:")
    for value, count in counts.items():
        print(f"  {value:<40} {count}")


def print_report(report: VerificationReport):
    print("=" * 60)
    print(f"Companies stored:  {report.total_companies}")

    if report.last_run_id is None:
        print("Last run:          none recorded")
    else:
        print(f"Last run:          {report.last_run_id} ({report.last_run_status})")
        print(f"Source total:      {report.source_total} companies / {report.last_run_pages} pages")
        print(f"Fetched:           {report.last_run_fetched}  [{_check(report.fetch_matches_source)}]")

    print(f"Matches source:    [{_check(report.companies_match_source)}]")
    print(f"Missing fields:    {report.missing_required_fields}  "
          f"[{_check(report.missing_required_fields == 0)}]")
    print(f"Duplicate ids:     {report.duplicate_ids}  [{_check(report.duplicate_ids == 0)}]")

    print_distribution("By asset class", report.by_asset_class)
    print_distribution("By industry", report.by_industry)
    print_distribution("By region", report.by_region)

    print("=" * 60)
    print("PASSED" if report.passed else "FAILED")


async def run_verification() -> int:
    try:
        async with async_session_maker() as session:
            report = await verify_data(session)
    finally:
        await engine.dispose()

    print_report(report)
    if not report.passed:
        logger.warning("Data verification failed")
    return 0 if report.passed else 1


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(run_verification()))
