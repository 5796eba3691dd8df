"""API module for the FHIR validation service."""

from .health import router as health_router
from .validation_endpoints import router as validation_router

__all__ = ["health_router", "validation_router"]
