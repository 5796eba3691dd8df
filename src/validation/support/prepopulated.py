"""Provider serving the operator-supplied definitions."""

from typing import Any, Dict, Mapping, Optional

from src.validation.profiles import ParsedProfiles, ResourceKind
from src.validation.support.base import ValidationSupport


class PrePopulatedValidationSupport(ValidationSupport):
    """Serves locally curated definitions keyed by canonical URL."""

    name = "pre-populated"

    def __init__(self, profiles: ParsedProfiles):
        """Initialize provider.

        Args:
            profiles: Definitions by kind, then by canonical URL
        """
        self._resources: Dict[ResourceKind, Mapping[str, Dict[str, Any]]] = {
            kind: dict(profiles.get(kind) or {}) for kind in ResourceKind
        }

    def fetch_resource(self, kind: ResourceKind, url: str) -> Optional[Dict[str, Any]]:
        """Return the curated definition for the URL, if any."""
        return self._resources[kind].get(url)

    def count(self, kind: ResourceKind) -> int:
        """Number of definitions of one kind."""
        return len(self._resources[kind])
