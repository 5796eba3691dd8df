"""Test configuration for the FHIR validation service.

Fixtures provide in-memory collaborators (catalogs, engines, profile
sources) so the pipeline can be exercised without external services.
"""

import copy
import os
from typing import Any, Callable, Dict, List, Optional

import pytest

from src.utils.exceptions import MissingMessageResourceError
from src.validation.models import Finding
from src.validation.support.chain import ValidationSupportChain

# Set testing environment BEFORE any settings are created
os.environ.setdefault("ENVIRONMENT", "test")

LOINC_ERYTHROCYTES = {
    "system": "http://loinc.org",
    "code": "789-8",
    "display": "Erythrocytes [#/volume] in Blood by Automated count",
}


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "fhir_compliance: mark test as exercising FHIR conformance rules"
    )


class FakeCatalog:
    """Message catalog over a plain dictionary of templates per locale."""

    def __init__(self, templates: Dict[str, Dict[str, str]]):
        self.templates = templates
        self.lookups: List[tuple] = []

    def resolve(self, key: str, locale: str) -> str:
        self.lookups.append((key, locale))
        try:
            return self.templates[locale][key]
        except KeyError:
            raise MissingMessageResourceError(key, locale) from None


class FakeEngine:
    """Engine returning canned findings and recording its calls."""

    def __init__(
        self,
        findings: Optional[List[Finding]] = None,
        error: Optional[Exception] = None,
    ):
        self.findings = findings or []
        self.error = error
        self.calls: List[Any] = []

    def validate_with_result(
        self, document: Any, chain: ValidationSupportChain
    ) -> List[Finding]:
        self.calls.append(document)
        if self.error is not None:
            raise self.error
        return list(self.findings)


@pytest.fixture
def fake_catalog() -> Callable[[Dict[str, Dict[str, str]]], FakeCatalog]:
    """Factory for dictionary-backed catalogs."""
    return FakeCatalog


@pytest.fixture
def fake_engine() -> Callable[..., FakeEngine]:
    """Factory for engines with canned findings."""
    return FakeEngine


@pytest.fixture
def observation() -> Dict[str, Any]:
    """A well-formed Observation coded with LOINC."""
    return {
        "resourceType": "Observation",
        "status": "final",
        "code": {"coding": [dict(LOINC_ERYTHROCYTES)]},
    }


@pytest.fixture
def observation_bundle(observation: Dict[str, Any]) -> Dict[str, Any]:
    """A transaction Bundle holding one Observation entry."""
    return {
        "resourceType": "Bundle",
        "type": "transaction",
        "entry": [
            {
                "resource": copy.deepcopy(observation),
                "request": {"method": "POST", "url": "Observation"},
            }
        ],
    }


@pytest.fixture
def lab_profile() -> Dict[str, Any]:
    """A differential Observation profile without snapshot."""
    return {
        "resourceType": "StructureDefinition",
        "url": "https://example.org/fhir/StructureDefinition/LabObservation",
        "name": "LabObservation",
        "status": "active",
        "kind": "resource",
        "abstract": False,
        "type": "Observation",
        "baseDefinition": "http://hl7.org/fhir/StructureDefinition/Observation",
        "derivation": "constraint",
        "differential": {
            "element": [
                {"id": "Observation", "path": "Observation", "short": "Lab result"},
                {"id": "Observation.category", "path": "Observation.category", "min": 1},
            ]
        },
    }
