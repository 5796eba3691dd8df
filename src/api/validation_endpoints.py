"""FHIR ``$validate`` endpoint."""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from src.utils.exceptions import PipelineNotReadyError
from src.utils.logging import get_logger
from src.validation.pipeline import ValidatorPipeline

FHIR_JSON = "application/fhir+json"

router = APIRouter(tags=["validation"])
logger = get_logger(__name__)


def get_pipeline(request: Request) -> ValidatorPipeline:
    """Return the pipeline built during application startup."""
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise PipelineNotReadyError()
    return pipeline


def fatal_outcome(message: str) -> Dict[str, Any]:
    """OperationOutcome reporting a failure of the service itself."""
    return {
        "resourceType": "OperationOutcome",
        "issue": [{"severity": "fatal", "code": "exception", "diagnostics": message}],
    }


@router.post("/$validate")
async def validate_resource(
    request: Request, pipeline: ValidatorPipeline = Depends(get_pipeline)
) -> JSONResponse:
    """Validate the FHIR resource in the request body.

    The response is always an OperationOutcome holding the findings that
    passed suppression and the minimum severity.
    """
    body = await request.body()
    # Validation is CPU bound, keep it off the event loop.
    outcome = await run_in_threadpool(pipeline.validate, body)
    logger.info(
        "validation_completed",
        findings=len(outcome.findings),
        has_errors=outcome.has_errors(),
    )
    return JSONResponse(
        content=pipeline.to_operation_outcome(outcome), media_type=FHIR_JSON
    )
