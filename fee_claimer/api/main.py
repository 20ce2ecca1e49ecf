"""
FastAPI application for the partner fee claimer.
Exposes the fee list, claim commands and live notifications to a dashboard.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
import structlog

from fee_claimer.api import routes
from fee_claimer.api.schemas import ErrorResponse, HealthCheckResponse
from fee_claimer.core.config import settings
from fee_claimer.core.exceptions import FeeClaimerException
from fee_claimer.core.logging import setup_logging
from fee_claimer.services.fee_claim_service import get_fee_claim_service


logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the fee list once on start-up, like the dashboard does on mount."""
    logger.info("Starting fee claimer API server")

    service = get_fee_claim_service()
    completed = await service.fetch()
    if completed is None:
        logger.warning("Initial fee fetch failed", error=service.state.error)

    yield

    logger.info("Shutting down fee claimer API server")


def create_app(with_lifespan: bool = True) -> FastAPI:
    """Create and configure FastAPI application."""
    setup_logging()

    app = FastAPI(
        title="Partner Fee Claimer API",
        description="Discover and claim accrued partner fees across DBC pools.",
        version=settings.app_version,
        lifespan=lifespan if with_lifespan else None,
    )

    @app.exception_handler(FeeClaimerException)
    async def fee_claimer_exception_handler(request: Request, exc: FeeClaimerException):
        logger.error("Request failed", path=request.url.path, code=exc.code, error=exc.message)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ErrorResponse(
                message=exc.message,
                error_code=exc.code,
                details=exc.details
            ).model_dump(mode="json")
        )

    @app.get("/health", response_model=HealthCheckResponse, tags=["health"])
    async def health_check():
        return HealthCheckResponse(version=settings.app_version)

    app.include_router(routes.router, prefix=settings.api_v1_prefix, tags=["fees"])

    return app
