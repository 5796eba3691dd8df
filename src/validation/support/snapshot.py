"""Derives snapshots for profiles that only carry a differential."""

import copy
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from src.utils.exceptions import SnapshotGenerationError
from src.utils.logging import get_logger
from src.validation.support.base import ValidationSupport

if TYPE_CHECKING:
    from src.validation.support.chain import ValidationSupportChain

logger = get_logger(__name__)


def has_snapshot(profile: Dict[str, Any]) -> bool:
    """Whether the profile already carries snapshot elements."""
    return bool((profile.get("snapshot") or {}).get("element"))


def element_key(element: Dict[str, Any]) -> str:
    """Elements are matched by id, falling back to their path."""
    return element.get("id") or element.get("path", "")


def merge_elements(
    base_elements: List[Dict[str, Any]], differential: List[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """Apply differential elements on top of a copy of the base snapshot."""
    merged = [copy.deepcopy(element) for element in base_elements]
    index = {element_key(element): i for i, element in enumerate(merged)}
    for element in differential:
        key = element_key(element)
        if key in index:
            merged[index[key]].update(copy.deepcopy(element))
        else:
            index[key] = len(merged)
            merged.append(copy.deepcopy(element))
    return merged


class SnapshotGeneratingValidationSupport(ValidationSupport):
    """Generates a snapshot from the base definition and the differential.

    The base is resolved through the chain, so it may itself be a
    differential profile whose snapshot is generated first.
    """

    name = "snapshot-generator"

    def generate_snapshot(
        self, chain: "ValidationSupportChain", profile: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Return a copy of the profile with a generated snapshot."""
        return self._generate(chain, profile, [])

    def _generate(
        self,
        chain: "ValidationSupportChain",
        profile: Dict[str, Any],
        visited: List[str],
    ) -> Dict[str, Any]:
        url = profile.get("url", "")
        if has_snapshot(profile):
            return profile
        if url in visited:
            raise SnapshotGenerationError(
                url, f"circular base definitions: {' -> '.join(visited + [url])}"
            )

        base_url = profile.get("baseDefinition")
        if not base_url:
            raise SnapshotGenerationError(url, "profile has no base definition")
        base = chain.fetch_raw_structure_definition(base_url)
        if base is None:
            raise SnapshotGenerationError(
                url, f"base definition {base_url} is unknown"
            )
        base = self._generate(chain, base, visited + [url])

        differential = (profile.get("differential") or {}).get("element") or []
        generated = copy.deepcopy(profile)
        generated["snapshot"] = {
            "element": merge_elements(base["snapshot"]["element"], differential)
        }
        logger.debug("snapshot_generated", url=url, base=base_url)
        return generated
