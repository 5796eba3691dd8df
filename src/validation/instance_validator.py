"""Instance validator run by the pipeline against the support chain.

This is not a profile engine: it parses the document, lets ``fhirclient``
check the structure of the R4 resource model, resolves the declared
profiles through the chain and checks every coding against the chain's
terminology providers. Constraint and binding evaluation are out of its
reach. Any engine with the same ``validate_with_result`` signature can be
plugged into the pipeline instead.
"""

import json
from typing import Any, Dict, Iterator, List, Optional, Protocol, Tuple, Union

from fhirclient.models.fhirabstractbase import FHIRValidationError
from fhirclient.models.fhirelementfactory import FHIRElementFactory

from src.utils.exceptions import SnapshotGenerationError
from src.validation.messages import MessageCatalog, format_message
from src.validation.models import Finding
from src.validation.severity import Severity
from src.validation.support.chain import ValidationSupportChain
from src.validation.support.default_profiles import BASE_DEFINITION_URL

Document = Union[str, bytes, Dict[str, Any]]


class ValidationEngine(Protocol):
    """Produces raw findings for a document using a support chain."""

    def validate_with_result(
        self, document: Document, chain: ValidationSupportChain
    ) -> List[Finding]:
        """Validate the document and return findings in emission order."""
        ...


def join_path(prefix: Optional[str], segment: Optional[str]) -> Optional[str]:
    """Join two dotted paths, either of which may be missing."""
    if not segment:
        return prefix
    if not prefix:
        return segment
    return f"{prefix}.{segment}"


def flatten_validation_error(
    error: FHIRValidationError, prefix: Optional[str] = None
) -> Iterator[Tuple[Optional[str], Exception]]:
    """Yield (path, error) for every leaf error of a nested validation error."""
    path = join_path(prefix, error.path)
    for nested in error.errors:
        if isinstance(nested, FHIRValidationError):
            yield from flatten_validation_error(nested, path)
        else:
            yield path, nested


def to_fhir_path(root: str, dotted: Optional[str]) -> str:
    """Turn ``entry.0.resource`` into ``Bundle.entry[0].resource``."""
    path = root
    for segment in (dotted or "").split("."):
        if not segment:
            continue
        if segment.isdigit():
            path += f"[{segment}]"
        else:
            path += f".{segment}"
    return path


def declared_profiles(resource: Dict[str, Any]) -> List[str]:
    """Profiles listed in ``meta.profile``."""
    meta = resource.get("meta")
    if not isinstance(meta, dict) or not isinstance(meta.get("profile"), list):
        return []
    return [url for url in meta["profile"] if isinstance(url, str)]


def iter_codings(
    node: Any, path: str, skip_keys: Tuple[str, ...] = ()
) -> Iterator[Tuple[str, Dict[str, Any]]]:
    """Yield every Coding-shaped element (``system`` and ``code``) below a node."""
    if isinstance(node, dict):
        if isinstance(node.get("system"), str) and isinstance(node.get("code"), str):
            yield path, node
        for key, value in node.items():
            if key not in skip_keys:
                yield from iter_codings(value, f"{path}.{key}")
    elif isinstance(node, list):
        for index, item in enumerate(node):
            yield from iter_codings(item, f"{path}[{index}]")


class InstanceValidator:
    """Validates FHIR R4 JSON documents, rendering messages in one locale."""

    def __init__(
        self,
        catalog: MessageCatalog,
        locale: str,
        error_for_unknown_profiles: bool = True,
    ):
        """Initialize validator.

        Args:
            catalog: Catalog the messages are rendered from
            locale: Locale of the rendered messages
            error_for_unknown_profiles: Report unresolvable profiles as errors
                instead of warnings
        """
        self.catalog = catalog
        self.locale = locale
        self.error_for_unknown_profiles = error_for_unknown_profiles

    def _finding(
        self,
        severity: Severity,
        key: str,
        location: Optional[str],
        *params: Any,
    ) -> Finding:
        message = format_message(self.catalog.resolve(key, self.locale), *params)
        return Finding(
            message=message, severity=severity, location=location, message_id=key
        )

    def validate_with_result(
        self, document: Document, chain: ValidationSupportChain
    ) -> List[Finding]:
        """Validate a serialized or already parsed resource."""
        findings: List[Finding] = []
        resource = self._parse(document, findings)
        if resource is not None:
            self._validate_resource(
                resource, resource["resourceType"], chain, findings, structural=True
            )
        return findings

    def _parse(
        self, document: Document, findings: List[Finding]
    ) -> Optional[Dict[str, Any]]:
        if isinstance(document, dict):
            parsed: Any = document
        else:
            try:
                text = (
                    document.decode("utf-8")
                    if isinstance(document, bytes)
                    else document
                )
                parsed = json.loads(text)
            except ValueError as e:
                findings.append(
                    self._finding(Severity.FATAL, "Validation_VAL_Unparseable", None, e)
                )
                return None

        if not isinstance(parsed, dict) or not isinstance(
            parsed.get("resourceType"), str
        ):
            findings.append(
                self._finding(
                    Severity.FATAL,
                    "Validation_VAL_Unparseable",
                    None,
                    "no resourceType found",
                )
            )
            return None
        return parsed

    def _validate_resource(
        self,
        resource: Dict[str, Any],
        path: str,
        chain: ValidationSupportChain,
        findings: List[Finding],
        structural: bool,
    ) -> None:
        resource_type = resource.get("resourceType")
        if (
            not isinstance(resource_type, str)
            or chain.fetch_raw_structure_definition(BASE_DEFINITION_URL + resource_type)
            is None
        ):
            findings.append(
                self._finding(
                    Severity.ERROR,
                    "Validation_VAL_Unknown_ResourceType",
                    path,
                    resource_type,
                )
            )
            return

        # Nested bundle entries are parsed together with their bundle.
        if structural:
            self._check_structure(resource_type, resource, path, findings)
        self._check_profiles(resource, resource_type, path, chain, findings)

        skip_keys: Tuple[str, ...] = ()
        if resource_type == "Bundle":
            skip_keys = ("entry",)
            self._check_entries(resource, path, chain, findings)
        self._check_codings(resource, path, chain, findings, skip_keys)

    def _check_structure(
        self,
        resource_type: str,
        resource: Dict[str, Any],
        path: str,
        findings: List[Finding],
    ) -> None:
        try:
            FHIRElementFactory.instantiate(resource_type, resource)
        except FHIRValidationError as error:
            for error_path, leaf in flatten_validation_error(error):
                detail = leaf.args[0] if leaf.args else leaf
                findings.append(
                    self._finding(
                        Severity.ERROR,
                        "Validation_VAL_Structure",
                        to_fhir_path(path, error_path),
                        detail,
                    )
                )

    def _check_entries(
        self,
        bundle: Dict[str, Any],
        path: str,
        chain: ValidationSupportChain,
        findings: List[Finding],
    ) -> None:
        entries = bundle.get("entry")
        if not isinstance(entries, list):
            return
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                findings.append(
                    self._finding(
                        Severity.ERROR,
                        "Validation_VAL_Structure",
                        f"{path}.entry[{index}]",
                        "Bundle entry is not a JSON object",
                    )
                )
                continue
            resource = entry.get("resource")
            if not isinstance(resource, dict):
                continue
            entry_path = f"{path}.entry[{index}].resource"
            profiles = declared_profiles(resource)
            if len(profiles) > 1:
                findings.append(
                    self._finding(
                        Severity.INFORMATION,
                        "BUNDLE_BUNDLE_ENTRY_MULTIPLE_PROFILES",
                        entry_path,
                        resource.get("resourceType"),
                        entry_path,
                    )
                )
            self._validate_resource(
                resource, entry_path, chain, findings, structural=False
            )

    def _check_profiles(
        self,
        resource: Dict[str, Any],
        resource_type: str,
        path: str,
        chain: ValidationSupportChain,
        findings: List[Finding],
    ) -> None:
        for index, url in enumerate(declared_profiles(resource)):
            location = f"{path}.meta.profile[{index}]"
            try:
                profile = chain.fetch_structure_definition(url)
            except SnapshotGenerationError as e:
                findings.append(
                    self._finding(
                        Severity.ERROR,
                        "Validation_VAL_Profile_Snapshot",
                        location,
                        url,
                        e.reason,
                    )
                )
                continue

            if profile is None:
                severity = Severity.WARNING
                if self.error_for_unknown_profiles:
                    severity = Severity.ERROR
                findings.append(
                    self._finding(
                        severity, "Validation_VAL_Profile_Unknown", location, url
                    )
                )
            elif profile.get("type") != resource_type:
                findings.append(
                    self._finding(
                        Severity.ERROR,
                        "Validation_VAL_Profile_WrongType",
                        location,
                        profile.get("type"),
                        resource_type,
                    )
                )

    def _check_codings(
        self,
        resource: Dict[str, Any],
        path: str,
        chain: ValidationSupportChain,
        findings: List[Finding],
        skip_keys: Tuple[str, ...],
    ) -> None:
        for location, coding in iter_codings(resource, path, skip_keys):
            system, code = coding["system"], coding["code"]
            display = coding.get("display")
            result = chain.validate_code(system, code, display)
            if result is None:
                findings.append(
                    self._finding(
                        Severity.INFORMATION,
                        "Terminology_TX_System_Unknown",
                        location,
                        system,
                    )
                )
            elif not result.valid:
                findings.append(
                    self._finding(
                        Severity.ERROR,
                        "Terminology_TX_Code_Unknown",
                        location,
                        system,
                        code,
                    )
                )
            elif (
                isinstance(display, str)
                and result.display
                and display.strip().lower() != result.display.strip().lower()
            ):
                findings.append(
                    self._finding(
                        Severity.WARNING,
                        "Terminology_TX_Display_Wrong",
                        location,
                        display,
                        system,
                        code,
                        result.display,
                    )
                )
