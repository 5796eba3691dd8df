"""Sources of the conformance resources served by the support chain."""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Protocol, Union

from src.utils.exceptions import ProfileLoadError
from src.utils.logging import get_logger

logger = get_logger(__name__)


class ResourceKind(str, Enum):
    """Conformance resource types the support chain can resolve."""

    STRUCTURE_DEFINITION = "StructureDefinition"
    VALUE_SET = "ValueSet"
    CODE_SYSTEM = "CodeSystem"
    QUESTIONNAIRE = "Questionnaire"


ParsedProfiles = Mapping[ResourceKind, Mapping[str, Dict[str, Any]]]


class ProfileSource(Protocol):
    """Provides parsed definitions grouped by kind and canonical URL."""

    def get_parsed_profiles(self) -> ParsedProfiles:
        """Return definitions by kind, then by canonical URL."""
        ...


def empty_profiles() -> Dict[ResourceKind, Dict[str, Dict[str, Any]]]:
    """A mapping with an empty entry for every kind."""
    return {kind: {} for kind in ResourceKind}


class StaticProfileSource:
    """Profile source over definitions that are already in memory."""

    def __init__(self, profiles: Optional[ParsedProfiles] = None):
        """Initialize with a mapping of kind to definitions by URL."""
        self._profiles = empty_profiles()
        for kind, resources in (profiles or {}).items():
            self._profiles[ResourceKind(kind)].update(resources)

    def get_parsed_profiles(self) -> ParsedProfiles:
        """Return the wrapped definitions."""
        return self._profiles


class DirectoryProfileSource:
    """Loads JSON definitions from a directory tree.

    Every ``*.json`` file holds either one conformance resource or a Bundle of
    them. Resources of other types are ignored. Unreadable files abort
    loading, the service must not start with a partial profile set.
    """

    def __init__(self, directory: Union[str, Path]):
        """Initialize profile source.

        Args:
            directory: Root directory to scan recursively
        """
        self.directory = Path(directory)

    def get_parsed_profiles(self) -> ParsedProfiles:
        """Read and group all definitions below the directory."""
        if not self.directory.is_dir():
            raise ProfileLoadError(str(self.directory), "not a directory")

        profiles = empty_profiles()
        for path in sorted(self.directory.rglob("*.json")):
            for resource in self._read_resources(path):
                self._add(profiles, resource, path)

        logger.info(
            "profiles_loaded",
            directory=str(self.directory),
            **{kind.value: len(resources) for kind, resources in profiles.items()},
        )
        return profiles

    def _read_resources(self, path: Path) -> Iterator[Dict[str, Any]]:
        try:
            with open(path, encoding="utf-8") as f:
                content = json.load(f)
        except (OSError, ValueError) as e:
            raise ProfileLoadError(str(path), str(e)) from e

        if not isinstance(content, dict):
            raise ProfileLoadError(str(path), "expected a JSON object")

        if content.get("resourceType") == "Bundle":
            for index, entry in enumerate(content.get("entry") or []):
                if not isinstance(entry, dict):
                    raise ProfileLoadError(
                        str(path), f"Bundle entry {index} is not a JSON object"
                    )
                resource = entry.get("resource")
                if isinstance(resource, dict):
                    yield resource
        else:
            yield content

    @staticmethod
    def _add(
        profiles: Dict[ResourceKind, Dict[str, Dict[str, Any]]],
        resource: Dict[str, Any],
        path: Path,
    ) -> None:
        try:
            kind = ResourceKind(resource.get("resourceType"))
        except ValueError:
            logger.debug(
                "resource_skipped",
                path=str(path),
                resource_type=resource.get("resourceType"),
            )
            return

        url = resource.get("url")
        if not url:
            raise ProfileLoadError(str(path), f"{kind.value} without canonical url")
        if url in profiles[kind]:
            logger.warning(
                "duplicate_definition", kind=kind.value, url=url, path=str(path)
            )
        profiles[kind][url] = resource
