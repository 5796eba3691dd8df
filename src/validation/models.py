"""Validation findings and the filtered outcome returned to callers."""

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from src.validation.severity import Severity

NO_ISSUES_MESSAGE = "No issues detected during validation"


class Finding(BaseModel):
    """A single diagnostic emitted by the validation engine."""

    model_config = ConfigDict(frozen=True)

    message: str
    severity: Optional[Severity] = None
    location: Optional[str] = None
    message_id: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None

    def to_issue(self) -> Dict[str, Any]:
        """Convert to a FHIR OperationOutcome issue component."""
        severity = self.severity or Severity.INFORMATION
        issue: Dict[str, Any] = {
            "severity": severity.value,
            "code": "processing",
            "diagnostics": self.message,
        }
        if self.location:
            issue["location"] = [self.location]
            issue["expression"] = [self.location]
        return issue


class Outcome(BaseModel):
    """Filtered, ordered findings of one validation call."""

    model_config = ConfigDict(frozen=True)

    findings: Tuple[Finding, ...] = Field(default_factory=tuple)

    @property
    def triples(self) -> List[Tuple[str, Optional[Severity], Optional[str]]]:
        """(message, severity, location) for every retained finding."""
        return [(f.message, f.severity, f.location) for f in self.findings]

    def has_errors(self) -> bool:
        """Whether any retained finding is an error or fatal."""
        return any(
            f.severity in (Severity.ERROR, Severity.FATAL) for f in self.findings
        )

    def to_operation_outcome(
        self, no_issues_message: str = NO_ISSUES_MESSAGE
    ) -> Dict[str, Any]:
        """Render as a FHIR OperationOutcome resource.

        An outcome without findings still carries one informational issue,
        since OperationOutcome requires at least one.
        """
        issues = [finding.to_issue() for finding in self.findings]
        if not issues:
            issues.append(
                {
                    "severity": Severity.INFORMATION.value,
                    "code": "informational",
                    "diagnostics": no_issues_message,
                }
            )
        return {"resourceType": "OperationOutcome", "issue": issues}
