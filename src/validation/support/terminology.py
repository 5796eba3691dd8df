"""Terminology providers: in-memory code systems and common vocabularies."""

import re
from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional, Pattern

from src.validation.profiles import ResourceKind
from src.validation.support.base import CodeValidationResult, ValidationSupport

if TYPE_CHECKING:
    from src.validation.support.chain import ValidationSupportChain

LOINC = "http://loinc.org"
UCUM = "http://unitsofmeasure.org"
BCP_47 = "urn:ietf:bcp:47"
BCP_13 = "urn:ietf:bcp:13"
ISO_3166 = "urn:iso:std:iso:3166"
ISO_4217 = "urn:iso:std:iso:4217"


def find_concept(
    concepts: Iterable[Dict[str, Any]], code: str, case_sensitive: bool = True
) -> Optional[Dict[str, Any]]:
    """Search a (possibly nested) concept list for a code."""
    wanted = code if case_sensitive else code.lower()
    for concept in concepts:
        candidate = concept.get("code", "")
        if (candidate if case_sensitive else candidate.lower()) == wanted:
            return concept
        nested = find_concept(concept.get("concept") or [], code, case_sensitive)
        if nested is not None:
            return nested
    return None


class InMemoryTerminologyValidationSupport(ValidationSupport):
    """Validates codes using only code systems and value sets known to the chain."""

    name = "in-memory-terminology"

    def is_code_system_supported(
        self, chain: "ValidationSupportChain", system: str
    ) -> bool:
        """Supported when the chain holds a complete CodeSystem for ``system``."""
        return self._complete_code_system(chain, system) is not None

    def validate_code(
        self,
        chain: "ValidationSupportChain",
        system: str,
        code: str,
        display: Optional[str] = None,
        value_set_url: Optional[str] = None,
    ) -> Optional[CodeValidationResult]:
        """Check a code against a known code system or value set."""
        if value_set_url:
            value_set = chain.fetch_resource(ResourceKind.VALUE_SET, value_set_url)
            if value_set is None:
                return None
            return self._validate_in_value_set(chain, value_set, system, code)

        code_system = self._complete_code_system(chain, system)
        if code_system is None:
            return None

        concept = find_concept(
            code_system.get("concept") or [],
            code,
            case_sensitive=code_system.get("caseSensitive", True),
        )
        if concept is None:
            return CodeValidationResult(
                valid=False,
                system=system,
                code=code,
                message=f"Unknown code '{code}' in the CodeSystem '{system}'",
            )
        return CodeValidationResult(
            valid=True, system=system, code=code, display=concept.get("display")
        )

    @staticmethod
    def _complete_code_system(
        chain: "ValidationSupportChain", system: str
    ) -> Optional[Dict[str, Any]]:
        code_system = chain.fetch_resource(ResourceKind.CODE_SYSTEM, system)
        # Fragments and examples cannot prove a code absent.
        if code_system is None or code_system.get("content", "complete") != "complete":
            return None
        return code_system

    def _validate_in_value_set(
        self,
        chain: "ValidationSupportChain",
        value_set: Dict[str, Any],
        system: str,
        code: str,
    ) -> Optional[CodeValidationResult]:
        compose = value_set.get("compose") or {}
        excluded = self._matches(chain, compose.get("exclude") or [], system, code)
        if excluded:
            return self._not_in_value_set(value_set, system, code)

        included = self._matches(chain, compose.get("include") or [], system, code)
        if included is None:
            return None
        if not included:
            return self._not_in_value_set(value_set, system, code)

        display = None
        lookup = chain.validate_code(system, code)
        if lookup is not None:
            display = lookup.display
        return CodeValidationResult(
            valid=True, system=system, code=code, display=display
        )

    def _matches(
        self,
        chain: "ValidationSupportChain",
        criteria: Iterable[Dict[str, Any]],
        system: str,
        code: str,
    ) -> Optional[bool]:
        """Whether any include/exclude criterion covers the code.

        Returns None when a criterion covers a whole code system that nobody
        in the chain can judge.
        """
        undecided = False
        for criterion in criteria:
            for imported in criterion.get("valueSet") or []:
                result = chain.validate_code(system, code, value_set_url=imported)
                if result is None:
                    undecided = True
                elif result.valid:
                    return True

            if criterion.get("system") != system:
                continue
            concepts = criterion.get("concept")
            if concepts:
                if any(c.get("code") == code for c in concepts):
                    return True
                continue
            result = chain.validate_code(system, code)
            if result is None:
                undecided = True
            elif result.valid:
                return True
        return None if undecided else False

    @staticmethod
    def _not_in_value_set(
        value_set: Dict[str, Any], system: str, code: str
    ) -> CodeValidationResult:
        return CodeValidationResult(
            valid=False,
            system=system,
            code=code,
            message=(
                f"The code '{system}#{code}' is not in the value set "
                f"'{value_set.get('url')}'"
            ),
        )


def loinc_check_digit(number: str) -> int:
    """Mod 10 check digit LOINC appends to the numeric part of a code."""
    total = 0
    for position, char in enumerate(reversed(number)):
        digit = int(char)
        if position % 2 == 0:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return (10 - total % 10) % 10


class CommonCodeSystemsTerminologyService(ValidationSupport):
    """Judges well-known vocabularies without loading them.

    Codes are checked for their syntax (and, for LOINC, the check digit); the
    vocabularies are far too large to ship as CodeSystem resources.
    """

    name = "common-code-systems"

    _PATTERNS: Dict[str, Pattern[str]] = {
        UCUM: re.compile(r"^[A-Za-z0-9\[\]{}()%.*/^'+\-_]+$"),
        BCP_47: re.compile(r"^[a-zA-Z]{2,3}(-[a-zA-Z0-9]{2,8})*$"),
        BCP_13: re.compile(r"^[a-z]+/[a-zA-Z0-9.+\-]+(\s*;.*)?$"),
        ISO_3166: re.compile(r"^([A-Z]{2}|[A-Z]{3}|\d{3})$"),
        ISO_4217: re.compile(r"^[A-Z]{3}$"),
    }
    _LOINC_CODE = re.compile(r"^(\d{1,7})-(\d)$")
    _LOINC_PART = re.compile(r"^L[AGP]\d+-\d$")

    def is_code_system_supported(
        self, chain: "ValidationSupportChain", system: str
    ) -> bool:
        """Supported for the vocabularies this service knows."""
        return system == LOINC or system in self._PATTERNS

    def validate_code(
        self,
        chain: "ValidationSupportChain",
        system: str,
        code: str,
        display: Optional[str] = None,
        value_set_url: Optional[str] = None,
    ) -> Optional[CodeValidationResult]:
        """Check the syntax of a code from a common vocabulary."""
        if value_set_url or not self.is_code_system_supported(chain, system):
            return None

        if system == LOINC:
            valid = self._is_valid_loinc(code)
        else:
            valid = bool(self._PATTERNS[system].match(code))

        if valid:
            return CodeValidationResult(valid=True, system=system, code=code)
        return CodeValidationResult(
            valid=False,
            system=system,
            code=code,
            message=f"The code '{code}' is not valid in the CodeSystem '{system}'",
        )

    def _is_valid_loinc(self, code: str) -> bool:
        if self._LOINC_PART.match(code):
            return True
        match = self._LOINC_CODE.match(code)
        if not match:
            return False
        number, check = match.groups()
        return loinc_check_digit(number) == int(check)
