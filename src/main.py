"""Application factory and entry point of the FHIR validation service."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from src.api import health_router, validation_router
from src.api.validation_endpoints import FHIR_JSON, fatal_outcome
from src.config import Settings, get_settings
from src.utils.exceptions import PipelineNotReadyError
from src.utils.logging import get_logger, setup_logging
from src.validation.messages import BundledMessageCatalog
from src.validation.pipeline import ValidatorPipeline
from src.validation.profiles import (
    DirectoryProfileSource,
    ProfileSource,
    StaticProfileSource,
)

logger = get_logger(__name__)


def build_pipeline(settings: Settings) -> ValidatorPipeline:
    """Build the validation pipeline from settings.

    Raises:
        ConfigurationError: If the settings describe an unusable pipeline
    """
    profile_source: ProfileSource
    if settings.profiles_path:
        profile_source = DirectoryProfileSource(settings.profiles_path)
    else:
        logger.warning("no_profiles_configured")
        profile_source = StaticProfileSource()

    return ValidatorPipeline(
        profile_source=profile_source,
        catalog=BundledMessageCatalog(),
        min_severity_outcome=settings.min_severity_outcome,
        locale=settings.locale,
        suppressed_messages=settings.suppressed_messages,
    )


def create_app(
    settings: Optional[Settings] = None, pipeline: Optional[ValidatorPipeline] = None
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Settings to use, defaults to the environment settings
        pipeline: Prebuilt pipeline, built from settings at startup if omitted
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging(settings)
        # Configuration errors abort startup.
        ready = pipeline or build_pipeline(settings)
        if settings.warm_up_on_startup:
            await run_in_threadpool(ready.warm_up)
        app.state.pipeline = ready
        logger.info("service_started", environment=settings.environment)
        yield
        app.state.pipeline = None
        logger.info("service_stopped")

    app = FastAPI(
        title=settings.app_name, version=settings.app_version, lifespan=lifespan
    )
    app.state.pipeline = None
    app.include_router(health_router)
    app.include_router(validation_router)

    @app.exception_handler(PipelineNotReadyError)
    async def pipeline_not_ready_handler(
        request: Request, exc: PipelineNotReadyError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=fatal_outcome(str(exc)),
            media_type=FHIR_JSON,
        )

    @app.exception_handler(Exception)
    async def validation_failed_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error("validation_failed", error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=fatal_outcome(f"Validation failed: {exc}"),
            media_type=FHIR_JSON,
        )

    return app


def main() -> None:
    """Run the service with uvicorn."""
    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
