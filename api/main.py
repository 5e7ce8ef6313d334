"""
FastAPI application initialization
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from api.routes import health, mirror
from core.config import settings
from core.logging import setup_logging
import logging
from api.middleware import RequestContextMiddleware
from ingestion.periodic import MirrorJob

setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start and stop the periodic mirror job"""
    logger.info("Starting API Mirror service")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    job = None
    if settings.ENABLE_SCHEDULER:
        job = MirrorJob()
        job.start()

    yield

    logger.info("Shutting down API Mirror service")
    if job is not None:
        await job.stop()


# Create FastAPI app
app = FastAPI(
    title="API Mirror",
    description="Read-only access to mirrored API data and sync history",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(RequestContextMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(mirror.router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "API Mirror",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "summary": "/mirror/summary",
            "logs": "/mirror/logs",
            "resource": "/mirror/{resource}"
        }
    }
