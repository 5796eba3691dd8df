"""Ordered chain of validation support providers."""

from typing import Any, Dict, Iterator, Optional, Tuple

from src.utils.exceptions import SnapshotGenerationError
from src.utils.logging import get_logger
from src.validation.profiles import ParsedProfiles, ResourceKind
from src.validation.support.base import CodeValidationResult, ValidationSupport
from src.validation.support.default_profiles import DefaultProfileValidationSupport
from src.validation.support.prepopulated import PrePopulatedValidationSupport
from src.validation.support.snapshot import (
    SnapshotGeneratingValidationSupport,
    has_snapshot,
)
from src.validation.support.terminology import (
    CommonCodeSystemsTerminologyService,
    InMemoryTerminologyValidationSupport,
)

logger = get_logger(__name__)


def canonical_candidates(url: str) -> Iterator[str]:
    """The URL itself, then the URL without a ``|version`` suffix."""
    yield url
    if "|" in url:
        yield url.split("|", 1)[0]


class ValidationSupportChain:
    """Asks each provider in turn; the first answer wins.

    The chain holds no mutable state of its own, so one instance can serve
    concurrent validations.
    """

    def __init__(self, *supports: ValidationSupport):
        """Initialize chain with providers in precedence order."""
        self._supports: Tuple[ValidationSupport, ...] = tuple(supports)

    @property
    def supports(self) -> Tuple[ValidationSupport, ...]:
        """Providers in precedence order."""
        return self._supports

    def fetch_resource(self, kind: ResourceKind, url: str) -> Optional[Dict[str, Any]]:
        """Resolve a conformance resource by canonical URL."""
        for candidate in canonical_candidates(url):
            for support in self._supports:
                resource = support.fetch_resource(kind, candidate)
                if resource is not None:
                    return resource
        return None

    def fetch_raw_structure_definition(self, url: str) -> Optional[Dict[str, Any]]:
        """Resolve a StructureDefinition without generating a snapshot."""
        return self.fetch_resource(ResourceKind.STRUCTURE_DEFINITION, url)

    def fetch_structure_definition(self, url: str) -> Optional[Dict[str, Any]]:
        """Resolve a StructureDefinition, generating its snapshot if missing.

        Raises:
            SnapshotGenerationError: If the snapshot cannot be generated
        """
        profile = self.fetch_raw_structure_definition(url)
        if profile is None or has_snapshot(profile):
            return profile
        return self.generate_snapshot(profile)

    def generate_snapshot(self, profile: Dict[str, Any]) -> Dict[str, Any]:
        """Let the first capable provider generate a snapshot."""
        for support in self._supports:
            generated = support.generate_snapshot(self, profile)
            if generated is not None:
                return generated
        raise SnapshotGenerationError(
            profile.get("url", ""), "no provider is able to generate snapshots"
        )

    def is_code_system_supported(self, system: str) -> bool:
        """Whether any provider can judge codes of ``system``."""
        return any(s.is_code_system_supported(self, system) for s in self._supports)

    def validate_code(
        self,
        system: str,
        code: str,
        display: Optional[str] = None,
        value_set_url: Optional[str] = None,
    ) -> Optional[CodeValidationResult]:
        """Check a code; None means no provider could judge it."""
        for support in self._supports:
            result = support.validate_code(self, system, code, display, value_set_url)
            if result is not None:
                return result
        return None


def build_support_chain(profiles: ParsedProfiles) -> ValidationSupportChain:
    """Compose the support chain in its fixed precedence order.

    Operator-supplied definitions come first and are never overridden by the
    built-in ones; terminology and snapshot providers only act as fallbacks.
    """
    pre_populated = PrePopulatedValidationSupport(profiles)
    chain = ValidationSupportChain(
        pre_populated,
        DefaultProfileValidationSupport(),
        InMemoryTerminologyValidationSupport(),
        CommonCodeSystemsTerminologyService(),
        SnapshotGeneratingValidationSupport(),
    )
    logger.info(
        "support_chain_built",
        providers=[support.name for support in chain.supports],
        **{kind.value: pre_populated.count(kind) for kind in ResourceKind},
    )
    return chain
