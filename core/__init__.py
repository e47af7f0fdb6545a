"""
Core utilities and configuration for the portfolio ingestion backend.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Database connection and session management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.exceptions import APIExtractionError, NetworkError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Get database session
    async with async_session_maker() as session:
        # Perform database operations
        pass
"""

__all__ = [
    "settings",
    "async_session_maker",
    "setup_logging",
    # Exceptions
    "IngestionException",
    "ExtractionError",
    "APIExtractionError",
    "NetworkError",
    "MalformedResponseError",
    "RateLimitError",
    "RetryExhaustedError",
    "TransformationError",
    "NormalizationError",
    "LoadError",
    "UpsertError",
    "RunTrackingError",
    "RetryableError",
    "NonRetryableError",
]
