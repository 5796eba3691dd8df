"""Validation pipeline turning raw engine findings into a filtered outcome."""

from typing import Any, Dict, List, Mapping, Optional

from src.config.base import DEFAULT_SUPPRESSED_MESSAGES
from src.utils.exceptions import InvalidSeverityConfigurationError
from src.utils.logging import get_logger
from src.validation.instance_validator import (
    Document,
    InstanceValidator,
    ValidationEngine,
)
from src.validation.message_filter import MessageFilter
from src.validation.messages import MessageCatalog
from src.validation.models import Finding, Outcome
from src.validation.profiles import ProfileSource
from src.validation.severity import Severity, parse_severity, rank
from src.validation.support.chain import ValidationSupportChain, build_support_chain

logger = get_logger(__name__)

WARM_UP_LOINC_CODE = "789-8"
WARM_UP_LOINC_DISPLAY = "Erythrocytes [#/volume] in Blood by Automated count"


def warm_up_document() -> Dict[str, Any]:
    """A minimal Bundle with one coded Observation."""
    return {
        "resourceType": "Bundle",
        "type": "transaction",
        "entry": [
            {
                "resource": {
                    "resourceType": "Observation",
                    "status": "final",
                    "code": {
                        "coding": [
                            {
                                "system": "http://loinc.org",
                                "code": WARM_UP_LOINC_CODE,
                                "display": WARM_UP_LOINC_DISPLAY,
                            }
                        ]
                    },
                },
                "request": {"method": "POST", "url": "Observation"},
            }
        ],
    }


class ValidatorPipeline:
    """Validates documents and filters the findings into an outcome.

    Everything is resolved when the pipeline is built: the minimum
    severity, the support chain and the suppressed message prefixes. A
    pipeline that was constructed is ready; invalid configuration raises
    instead. The configuration is never modified afterwards, so one
    pipeline can serve concurrent ``validate`` calls.
    """

    def __init__(
        self,
        profile_source: ProfileSource,
        catalog: MessageCatalog,
        min_severity_outcome: str,
        locale: str,
        suppressed_messages: Optional[Mapping[str, str]] = None,
        engine: Optional[ValidationEngine] = None,
    ):
        """Initialize pipeline.

        Args:
            profile_source: Source of the operator-supplied definitions
            catalog: Catalog the suppressed templates are resolved from
            min_severity_outcome: Lowest severity reported to callers
            locale: Locale the engine renders its messages in
            suppressed_messages: Template keys to suppress, mapped to the reason
            engine: Validation engine, defaults to the bundled instance validator

        Raises:
            InvalidSeverityConfigurationError: If the minimum severity is unknown
            MissingMessageResourceError: If a required template is missing
        """
        min_severity = parse_severity(min_severity_outcome)
        if min_severity is None:
            error = InvalidSeverityConfigurationError(min_severity_outcome)
            logger.error("invalid_configuration", error=str(error))
            raise error
        self.min_severity: Severity = min_severity
        self._min_rank = rank(min_severity)
        self.locale = locale

        if suppressed_messages is None:
            suppressed_messages = DEFAULT_SUPPRESSED_MESSAGES
        self.message_filter = MessageFilter(suppressed_messages.keys(), catalog, locale)
        self.chain: ValidationSupportChain = build_support_chain(
            profile_source.get_parsed_profiles()
        )
        self.engine: ValidationEngine = engine or InstanceValidator(catalog, locale)
        self._no_issues_message = catalog.resolve("No_issues_detected", locale)

        logger.info(
            "pipeline_ready",
            locale=locale,
            min_severity=self.min_severity.value,
            suppressed=sorted(suppressed_messages),
        )

    def warm_up(self) -> bool:
        """Validate a synthetic document once to load the built-in definitions.

        Failures are logged and reported through the return value; the
        pipeline stays usable either way.
        """
        logger.info("warm_up_started")
        try:
            self.engine.validate_with_result(warm_up_document(), self.chain)
        except Exception as e:
            logger.warning("warm_up_failed", error=str(e), exc_info=True)
            return False
        logger.info("warm_up_finished")
        return True

    def is_allowed(self, finding: Finding) -> bool:
        """Whether the finding is not a suppressed message."""
        return self.message_filter.is_allowed(finding)

    def is_at_least_min_severity(self, finding: Finding) -> bool:
        """Whether the finding reaches the configured minimum severity."""
        return rank(finding.severity) >= self._min_rank

    def filter_findings(self, findings: List[Finding]) -> Outcome:
        """Keep findings that are allowed and severe enough, in order."""
        retained = []
        for finding in findings:
            allowed = self.is_allowed(finding)
            severe_enough = self.is_at_least_min_severity(finding)
            if allowed and severe_enough:
                retained.append(finding)
        return Outcome(findings=tuple(retained))

    def validate(self, document: Document) -> Outcome:
        """Validate a document and return the filtered outcome.

        Errors raised by the engine propagate unchanged.
        """
        findings = self.engine.validate_with_result(document, self.chain)
        outcome = self.filter_findings(findings)
        logger.debug(
            "document_validated",
            raw_findings=len(findings),
            retained_findings=len(outcome.findings),
        )
        return outcome

    def to_operation_outcome(self, outcome: Outcome) -> Dict[str, Any]:
        """Render an outcome as OperationOutcome in the pipeline's locale."""
        return outcome.to_operation_outcome(self._no_issues_message)
