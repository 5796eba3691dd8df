"""Severity levels of validation findings and their total order."""

from enum import Enum
from typing import Dict, Optional


class Severity(str, Enum):
    """FHIR issue severity, ordered from least to most severe."""

    INFORMATION = "information"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"


_RANKS: Dict[Severity, int] = {
    Severity.INFORMATION: 0,
    Severity.WARNING: 1,
    Severity.ERROR: 2,
    Severity.FATAL: 3,
}


def rank(severity: Optional[Severity]) -> int:
    """Return the rank of a severity; a missing severity ranks lowest."""
    if severity is None:
        return 0
    return _RANKS.get(severity, 0)


def parse_severity(value: Optional[str]) -> Optional[Severity]:
    """Parse a configured severity, ignoring case and surrounding whitespace.

    Returns None when the value is not a known severity.
    """
    if value is None:
        return None
    try:
        return Severity(value.strip().lower())
    except ValueError:
        return None
