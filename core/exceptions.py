"""
Custom exceptions for the ingestion pipeline with structured error context.

Every exception carries a context dictionary so failures can be logged and
sampled into the ingestion run record without losing the page number, company
name or HTTP status that produced them.

Exception Hierarchy:
    IngestionException (base)
    ├── ExtractionError
    │   └── APIExtractionError
    │       ├── NetworkError            (retryable)
    │       ├── MalformedResponseError  (retryable)
    │       ├── RateLimitError          (non-retryable at page level)
    │       └── RetryExhaustedError
    ├── TransformationError
    │   └── NormalizationError
    ├── LoadError
    │   └── UpsertError
    ├── RunTrackingError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime


class IngestionException(Exception):
    """
    Base exception for all ingestion errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (page, url, company, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(IngestionException):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Network timeouts and connection resets
    - Non-2xx responses other than 429
    - Response bodies that fail to parse
    """
    pass


class NonRetryableError(IngestionException):
    """
    Mixin for errors that should NOT trigger an immediate retry.

    The page-level retry policy re-raises these at once and leaves the
    decision to the caller.
    """
    pass


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(IngestionException):
    """Base exception for data extraction failures."""
    pass


class APIExtractionError(ExtractionError):
    """
    Exception raised when fetching from the portfolio API fails.

    Context should include:
        - api_url: The API endpoint that failed
        - page: Page number being fetched
        - status_code: HTTP status code (if applicable)
        - response_body: Response body (truncated if large)
    """
    pass


class NetworkError(RetryableError, APIExtractionError):
    """Network errors and unexpected HTTP statuses that should be retried."""
    pass


class MalformedResponseError(RetryableError, APIExtractionError):
    """Response body could not be parsed or lacks the results array."""
    pass


class RateLimitError(NonRetryableError, APIExtractionError):
    """HTTP 429 from upstream. Aborts the current attempt instead of retrying."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after  # Seconds suggested by upstream
        if retry_after:
            self.context["retry_after"] = retry_after


class RetryExhaustedError(APIExtractionError):
    """
    Raised when a retry policy runs out of attempts.

    Context should include:
        - operation: What was being retried
        - attempts: Number of attempts made
    """
    pass


# ============================================================================
# Transformation Errors
# ============================================================================

class TransformationError(IngestionException):
    """Base exception for data transformation failures."""
    pass


class NormalizationError(TransformationError):
    """
    Exception raised when a raw company cannot be mapped.

    Context should include:
        - company_name: Name of the raw company
    """
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(IngestionException):
    """Base exception for data loading failures."""
    pass


class UpsertError(LoadError):
    """
    Exception raised when upserting a single company fails.

    Context should include:
        - company_id: Identity key of the company being upserted
        - operation: SELECT, INSERT or UPDATE
        - table_name: Name of the table
    """
    pass


# ============================================================================
# Run Tracking Errors
# ============================================================================

class RunTrackingError(IngestionException):
    """
    Exception raised when the ingestion run record cannot be written.

    Context should include:
        - run_id: The run being tracked
        - operation: start, record_error, finish
    """
    pass
