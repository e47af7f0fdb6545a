"""
FastAPI application initialization
"""

from fastapi import FastAPI
from api.routes import admin, companies, health, ingestion_runs, stats
from api.middleware import RequestContextMiddleware
from core.config import settings
from core.logging import setup_logging
from ingestion.scheduler import IngestionScheduler
import logging

setup_logging()

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Portfolio Ingestion API",
    description="Ingests the KKR portfolio and serves the normalized companies",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

scheduler = IngestionScheduler()


app.include_router(health.router)
app.include_router(companies.router)
app.include_router(stats.router)
app.include_router(ingestion_runs.router)
app.include_router(admin.router)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Portfolio Ingestion API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    if settings.ENABLE_SCHEDULED_INGEST:
        scheduler.start()
    else:
        logger.info("Scheduled ingestion disabled")


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Portfolio Ingestion API")
    scheduler.stop()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Portfolio Ingestion API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "companies": "/companies",
            "stats": "/stats",
            "ingestion_runs": "/ingestion/runs",
            "admin_ingest": "/admin/ingest"
        }
    }
