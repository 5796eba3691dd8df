"""Built-in base definitions of the FHIR R4 specification."""

import json
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.utils.logging import get_logger
from src.validation.profiles import ResourceKind
from src.validation.support.base import ValidationSupport

logger = get_logger(__name__)

DEFINITIONS_DIR = Path(__file__).resolve().parent.parent / "definitions"
BASE_DEFINITION_URL = "http://hl7.org/fhir/StructureDefinition/"

# Abstract ancestors of every resource type.
_ABSTRACT_TYPES = {"Resource": None, "DomainResource": "Resource"}
# Resources that do not derive from DomainResource.
_PLAIN_RESOURCES = {"Bundle", "Binary", "Parameters"}


def base_structure_definition(
    type_name: str, parent: Optional[str], abstract: bool = False
) -> Dict[str, Any]:
    """Build the base StructureDefinition of one resource type."""
    definition: Dict[str, Any] = {
        "resourceType": "StructureDefinition",
        "id": type_name,
        "url": BASE_DEFINITION_URL + type_name,
        "name": type_name,
        "status": "active",
        "kind": "resource",
        "abstract": abstract,
        "type": type_name,
        "derivation": "specialization",
        "snapshot": {
            "element": [{"id": type_name, "path": type_name, "min": 0, "max": "*"}]
        },
    }
    if parent:
        definition["baseDefinition"] = BASE_DEFINITION_URL + parent
    return definition


class DefaultProfileValidationSupport(ValidationSupport):
    """Serves the base resource definitions and core code systems.

    Definitions are loaded on first use, so a warm-up validation is what
    moves the loading cost out of the first real request.
    """

    name = "default-profiles"

    def __init__(self, definitions_dir: Optional[Path] = None):
        """Initialize provider.

        Args:
            definitions_dir: Directory holding the bundled definition files
        """
        self.definitions_dir = definitions_dir or DEFINITIONS_DIR
        self._resources: Optional[Dict[ResourceKind, Dict[str, Dict[str, Any]]]] = None
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        """Whether the definitions have been loaded."""
        return self._resources is not None

    def _load(self) -> Dict[ResourceKind, Dict[str, Dict[str, Any]]]:
        if self._resources is None:
            with self._lock:
                if self._resources is None:
                    resources = self._read_definitions()
                    logger.info(
                        "default_definitions_loaded",
                        **{k.value: len(v) for k, v in resources.items()},
                    )
                    self._resources = resources
        return self._resources

    def _read_definitions(self) -> Dict[ResourceKind, Dict[str, Dict[str, Any]]]:
        resources: Dict[ResourceKind, Dict[str, Dict[str, Any]]] = {
            kind: {} for kind in ResourceKind
        }
        structure_definitions = resources[ResourceKind.STRUCTURE_DEFINITION]

        for type_name, parent in _ABSTRACT_TYPES.items():
            sd = base_structure_definition(type_name, parent, abstract=True)
            structure_definitions[sd["url"]] = sd

        with open(self.definitions_dir / "resource_types.json", encoding="utf-8") as f:
            type_names: List[str] = json.load(f)
        for type_name in type_names:
            parent = "Resource" if type_name in _PLAIN_RESOURCES else "DomainResource"
            sd = base_structure_definition(type_name, parent)
            structure_definitions[sd["url"]] = sd

        with open(self.definitions_dir / "terminology.json", encoding="utf-8") as f:
            terminology: Dict[str, List[Dict[str, Any]]] = json.load(f)
        for kind_name, definitions in terminology.items():
            kind = ResourceKind(kind_name)
            for definition in definitions:
                resources[kind][definition["url"]] = definition

        return resources

    def fetch_resource(self, kind: ResourceKind, url: str) -> Optional[Dict[str, Any]]:
        """Return the built-in definition for the URL, if any."""
        return self._load()[kind].get(url)
