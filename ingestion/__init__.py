"""
Portfolio ingestion pipeline.

Modules:
    retry: RetryPolicy shared by page-level retry and pass-level backoff
    accumulator: Multi-pass accumulation until the source total is reached
    run_tracker: RunHandle and IngestionRunTracker (ingestion_runs bookkeeping)
    runner: PortfolioIngestRunner, the orchestrator
    scheduler: APScheduler cron integration

Subpackages:
    extractors: PortfolioAPIClient, the paginated page fetcher
    transformers: Identity/fingerprint hashing and normalization
    loaders: CompanyLoader, the content-aware idempotent upsert

Architecture:
    PortfolioIngestRunner
      -> PortfolioAccumulator (-> PortfolioAPIClient.fetch_page, looped)
      -> dedupe by derived identity
      -> for each unique company: normalize -> CompanyLoader.upsert
      -> IngestionRunTracker updates -> IngestionResult

    Per-record failures are counted and sampled without aborting the run.
    Systemic failures mark the run failed; ingest_all still returns a result.

Usage:
    from core.database import async_session_maker
    from ingestion.runner import PortfolioIngestRunner

    async with async_session_maker() as session:
        result = await PortfolioIngestRunner(session).ingest_all()

    print(f"{result.counts.fetched}/{result.source_meta.total_from_source} companies")
"""

__all__ = [
    "RetryPolicy",
    "PortfolioAccumulator",
    "PortfolioAPIClient",
    "CompanyLoader",
    "IngestionRunTracker",
    "PortfolioIngestRunner",
    "IngestionScheduler",
]
