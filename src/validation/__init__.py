"""Validation of FHIR documents and post-processing of the findings."""

from src.validation.messages import BundledMessageCatalog, MessageCatalog
from src.validation.models import Finding, Outcome
from src.validation.pipeline import ValidatorPipeline
from src.validation.profiles import (
    DirectoryProfileSource,
    ProfileSource,
    ResourceKind,
    StaticProfileSource,
)
from src.validation.severity import Severity, parse_severity, rank

__all__ = [
    "BundledMessageCatalog",
    "DirectoryProfileSource",
    "Finding",
    "MessageCatalog",
    "Outcome",
    "ProfileSource",
    "ResourceKind",
    "Severity",
    "StaticProfileSource",
    "ValidatorPipeline",
    "parse_severity",
    "rank",
]
