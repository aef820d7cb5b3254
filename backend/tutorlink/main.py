# backend/tutorlink/main.py
"""
FastAPI application for the TutorLink session engine.

Run with:
    uvicorn tutorlink.main:app --reload
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.responses import JSONResponse

from .core.config import is_running_tests, settings
from .core.exceptions import DomainException
from .database import create_schema
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes.v1 import (
    sessions as sessions_v1,
    subjects as subjects_v1,
    tutor_availability as tutor_availability_v1,
    tutor_sessions as tutor_sessions_v1,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)

API_TITLE = "TutorLink API"
API_VERSION = "1.0.0"


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(f"{API_TITLE} starting up...")
    logger.info(
        f"Environment: {settings.environment}, operating timezone: {settings.operating_timezone}"
    )
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")

    if settings.auto_create_schema:
        create_schema()
        logger.info("Database schema ensured")

    yield

    logger.info(f"{API_TITLE} shutting down...")


def register_error_handlers(app: FastAPI) -> None:
    """Render domain errors that escape a route the same way routes do."""

    @app.exception_handler(DomainException)
    async def _domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


app = FastAPI(
    title=API_TITLE,
    description="Tutor matching, booking and session lifecycle",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)
register_error_handlers(app)

# Create API v1 router
api_v1 = APIRouter(prefix="/api/v1")

# Mount v1 routes
api_v1.include_router(sessions_v1.router, prefix="/sessions")
api_v1.include_router(tutor_sessions_v1.router, prefix="/tutor/sessions")
api_v1.include_router(tutor_availability_v1.router, prefix="/tutor/availability")
api_v1.include_router(subjects_v1.router, prefix="/subjects")

app.include_router(api_v1)


@app.get("/health", include_in_schema=False)
def health_check() -> dict:
    return {"status": "healthy", "service": "tutorlink", "version": API_VERSION}


@app.get("/metrics/prometheus", include_in_schema=False)
def prometheus_endpoint() -> Response:
    """Prometheus scrape endpoint; public by convention."""
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )
