"""ASGI application of the FHIR validation service.

Run with ``uvicorn app:app``.
"""

from src.main import create_app

app = create_app()
