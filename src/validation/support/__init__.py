"""Validation support providers and the chain composing them."""

from src.validation.support.base import CodeValidationResult, ValidationSupport
from src.validation.support.chain import ValidationSupportChain, build_support_chain
from src.validation.support.default_profiles import DefaultProfileValidationSupport
from src.validation.support.prepopulated import PrePopulatedValidationSupport
from src.validation.support.snapshot import SnapshotGeneratingValidationSupport
from src.validation.support.terminology import (
    CommonCodeSystemsTerminologyService,
    InMemoryTerminologyValidationSupport,
)

__all__ = [
    "CodeValidationResult",
    "CommonCodeSystemsTerminologyService",
    "DefaultProfileValidationSupport",
    "InMemoryTerminologyValidationSupport",
    "PrePopulatedValidationSupport",
    "SnapshotGeneratingValidationSupport",
    "ValidationSupport",
    "ValidationSupportChain",
    "build_support_chain",
]
