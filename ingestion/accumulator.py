"""
Multi-pass accumulation of the full portfolio.

The upstream CDN routes requests to different edge caches and each edge may
hold a different subset of companies, so a single sweep over all pages can
come back short. The accumulator repeats whole sweeps, merging by derived
identity, until the merged set reaches the total the source reports or the
attempt budget runs out.

Pages are fetched sequentially over one keep-alive connection. Concurrent
fetching was observed to hop edges far more often and lose up to ~5% of
companies per sweep.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from core.config import settings
from core.exceptions import ExtractionError, RateLimitError
from ingestion.extractors.portfolio_api import PageResult
from ingestion.retry import RetryPolicy
from ingestion.transformers.identity import derive_identity
from schemas.company import RawPortfolioCompany

logger = logging.getLogger(__name__)


@dataclass
class AccumulationResult:
    """Unique companies collected across all passes"""
    records: List[RawPortfolioCompany]
    total_reported: int
    pages_reported: int
    attempts: int
    converged: bool
    pages_failed: int = 0


@dataclass
class _PassOutcome:
    first_page: Optional[PageResult] = None
    pages_failed: int = 0
    rate_limited: bool = False


@dataclass
class PortfolioAccumulator:
    """
    Drive repeated fetch passes until the collected set is complete.

    Attributes:
        client: Anything with ``async fetch_page(page_number) -> PageResult``
        pass_policy: Attempt budget and delay between passes
            (default: 5 attempts, 2s x attempt, capped at 10s)
        page_delay: Pause between sequential page requests in seconds
    """

    client: object
    pass_policy: Optional[RetryPolicy] = None
    page_delay: Optional[float] = None
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    _accumulated: Dict[str, RawPortfolioCompany] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self):
        if self.pass_policy is None:
            self.pass_policy = RetryPolicy(
                max_attempts=settings.ACCUMULATION_MAX_ATTEMPTS,
                base_delay=settings.ACCUMULATION_DELAY_SECONDS,
                max_delay=settings.ACCUMULATION_MAX_DELAY_SECONDS,
                linear=True,
                sleep=self.sleep,
            )
        if self.page_delay is None:
            self.page_delay = settings.PAGE_DELAY_SECONDS

    async def fetch_all(self) -> AccumulationResult:
        """
        Run passes until converged or the attempt budget is spent.

        Returns:
            AccumulationResult with best-effort records; ``converged`` is False
            when the budget ran out first.

        Raises:
            ExtractionError: If page 1 could not be fetched in any pass
        """
        self._accumulated = {}
        total_reported: Optional[int] = None
        pages_reported = 0
        pages_failed = 0
        attempts = 0
        last_error: Optional[Exception] = None

        while attempts < self.pass_policy.max_attempts:
            attempts += 1
            logger.info(
                f"Accumulation pass {attempts}/{self.pass_policy.max_attempts} "
                f"({len(self._accumulated)} collected so far)"
            )

            try:
                outcome = await self._run_pass()
            except Exception as e:
                # Page 1 failed: no totals from this pass
                last_error = e
                logger.warning(f"Pass {attempts} could not fetch page 1: {e}")
                outcome = None
            else:
                pages_failed += outcome.pages_failed
                total_reported = outcome.first_page.total_reported
                pages_reported = outcome.first_page.pages_reported

            if total_reported is not None and len(self._accumulated) >= total_reported:
                logger.info(
                    f"Converged after {attempts} pass(es): "
                    f"{len(self._accumulated)}/{total_reported} companies"
                )
                return self._result(total_reported, pages_reported, attempts, True, pages_failed)

            if total_reported is not None:
                logger.warning(
                    f"Pass {attempts} incomplete: {len(self._accumulated)}/{total_reported} companies"
                )

            if attempts < self.pass_policy.max_attempts:
                delay = self.pass_policy.delay_for(attempts)
                if outcome is not None and outcome.rate_limited:
                    logger.warning(f"Rate limited during pass {attempts}; backing off {delay:.1f}s")
                await self.sleep(delay)

        if total_reported is None:
            raise ExtractionError(
                "Portfolio source unavailable: page 1 failed in every pass",
                context={"attempts": attempts},
                original_exception=last_error,
            )

        logger.warning(
            f"Accumulation did not converge after {attempts} passes: "
            f"{len(self._accumulated)}/{total_reported} companies"
        )
        return self._result(total_reported, pages_reported, attempts, False, pages_failed)

    async def _run_pass(self) -> _PassOutcome:
        """One sweep over every page. Page 1 failures propagate; later ones are skipped."""
        outcome = _PassOutcome()
        outcome.first_page = await self.client.fetch_page(1)
        self._merge(outcome.first_page.records)

        for page_number in range(2, outcome.first_page.pages_reported + 1):
            await self.sleep(self.page_delay)
            try:
                page = await self.client.fetch_page(page_number)
            except RateLimitError as e:
                # Abandon the rest of this pass; the pass-level backoff applies
                outcome.pages_failed += 1
                outcome.rate_limited = True
                logger.warning(f"Aborting pass at page {page_number}: {e.message}")
                break
            except Exception as e:
                outcome.pages_failed += 1
                logger.warning(f"Skipping page {page_number} in this pass: {e}")
                continue
            self._merge(page.records)

        return outcome

    def _merge(self, records: List[RawPortfolioCompany]) -> int:
        """First occurrence wins; later duplicates are discarded, not merged."""
        added = 0
        for raw in records:
            key = derive_identity(raw)
            if key not in self._accumulated:
                self._accumulated[key] = raw
                added += 1
        return added

    def _result(
        self,
        total_reported: int,
        pages_reported: int,
        attempts: int,
        converged: bool,
        pages_failed: int,
    ) -> AccumulationResult:
        return AccumulationResult(
            records=list(self._accumulated.values()),
            total_reported=total_reported,
            pages_reported=pages_reported,
            attempts=attempts,
            converged=converged,
            pages_failed=pages_failed,
        )
