"""
Portfolio API page fetcher with timeout, browser-like headers and bounded retry.

This module performs exactly one logical operation: fetch one page of the
upstream portfolio search endpoint. It provides:
- Exponential backoff retry for transient failures (RetryPolicy)
- Immediate surfacing of HTTP 429 so the accumulator can back off a whole pass
- A single keep-alive httpx.AsyncClient reused across sequential pages
- Classification of failures into retryable and non-retryable exceptions
"""

import httpx
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional
from schemas.company import RawPortfolioCompany
from ingestion.retry import RetryPolicy
from core.config import settings
from core.exceptions import (
    MalformedResponseError,
    NetworkError,
    RateLimitError,
)
import logging

logger = logging.getLogger(__name__)

# The upstream sits behind a CDN with bot protection; a plain client UA gets
# challenged far more often than a desktop browser UA.
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-US,en;q=0.9",
}

SORT_PARAMS = {"sortParameter": "name", "sortingOrder": "asc"}


@dataclass
class PageResult:
    """One parsed page of the upstream response"""
    page_number: int
    total_reported: int
    pages_reported: int
    records: List[RawPortfolioCompany] = field(default_factory=list)


class PortfolioAPIClient:
    """
    Fetch pages from the portfolio search API.

    Usage:
        async with PortfolioAPIClient() as client:
            first = await client.fetch_page(1)

    Attributes:
        api_url: Upstream endpoint (page size is fixed by the upstream)
        timeout: Request timeout in seconds (default: 30.0)
        retry_policy: Page-level retry policy (default: 3 attempts, 1s -> 2s -> 4s, capped at 8s)
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_url = api_url or settings.PORTFOLIO_API_URL
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=settings.PAGE_MAX_RETRIES,
            base_delay=settings.PAGE_RETRY_BASE_DELAY,
            max_delay=settings.PAGE_RETRY_MAX_DELAY,
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def endpoint_url(self) -> str:
        """API endpoint URL (for provenance metadata)"""
        return self.api_url

    async def __aenter__(self) -> "PortfolioAPIClient":
        self._get_client()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=BROWSER_HEADERS,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_page(self, page_number: int) -> PageResult:
        """
        Fetch one page, retrying transient failures.

        Raises:
            ValueError: If page_number < 1
            RateLimitError: On HTTP 429 (not retried here)
            RetryExhaustedError: When every attempt failed with a retryable error
        """
        if page_number < 1:
            raise ValueError(f"page_number must be >= 1, got {page_number}")

        return await self.retry_policy.call(
            lambda: self._fetch_page_once(page_number),
            description=f"portfolio page {page_number}",
        )

    async def _fetch_page_once(self, page_number: int) -> PageResult:
        client = self._get_client()
        params = {"page": page_number, **SORT_PARAMS}
        context = {"api_url": self.api_url, "page": page_number}

        try:
            response = await client.get(self.api_url, params=params)
        except httpx.TimeoutException as e:
            raise NetworkError(
                f"Request timeout fetching page {page_number}",
                context={**context, "timeout": self.timeout},
                original_exception=e
            )
        except httpx.TransportError as e:
            raise NetworkError(
                f"Network error fetching page {page_number}",
                context=context,
                original_exception=e
            )

        if response.status_code == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            logger.warning(f"Rate limited on page {page_number} (Retry-After: {retry_after})")
            raise RateLimitError(
                f"Rate limited (429) fetching page {page_number}",
                context={**context, "status_code": 429},
                retry_after=retry_after
            )

        if not response.is_success:
            raise NetworkError(
                f"HTTP {response.status_code} fetching page {page_number}",
                context={
                    **context,
                    "status_code": response.status_code,
                    "response_body": response.text[:500]  # Truncate
                }
            )

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"Failed to parse JSON response for page {page_number}",
                context={**context, "response_body": response.text[:500]},
                original_exception=e
            )

        return self._parse_page(data, page_number)

    def _parse_page(self, data: Any, page_number: int) -> PageResult:
        context = {"api_url": self.api_url, "page": page_number}

        if not isinstance(data, dict) or not isinstance(data.get("results"), list):
            raise MalformedResponseError(
                f"Response for page {page_number} has no results array",
                context=context
            )

        if data.get("success") is False:
            raise MalformedResponseError(
                f"API returned success=false: {data.get('message', '')}",
                context=context
            )

        total_reported = _as_int(data.get("hits"))
        pages_reported = _as_int(data.get("pages"))
        if total_reported is None or pages_reported is None:
            raise MalformedResponseError(
                f"Response for page {page_number} lacks hits/pages",
                context={**context, "hits": data.get("hits"), "pages": data.get("pages")}
            )

        records = []
        for index, item in enumerate(data["results"]):
            if not isinstance(item, dict):
                logger.warning(f"Skipping non-object result #{index} on page {page_number}")
                continue
            records.append(RawPortfolioCompany.model_validate(item))

        logger.debug(f"Fetched {len(records)} records from page {page_number}/{pages_reported}")

        return PageResult(
            page_number=page_number,
            total_reported=total_reported,
            pages_reported=pages_reported,
            records=records,
        )


def _as_int(value: Any) -> Optional[int]:
    """Parse an integer count; bools and garbage are rejected"""
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_retry_after(value: Optional[str]) -> Optional[int]:
    if value and value.strip().isdigit():
        return int(value.strip())
    return None
