"""Custom exceptions for the FHIR validation service."""

from typing import Optional


class ValidationServiceException(Exception):
    """Base exception for all validation service exceptions."""

    def __init__(self, message: str, code: Optional[str] = None):
        """Initialize exception.

        Args:
            message: Error message
            code: Optional error code
        """
        super().__init__(message)
        self.code = code


class ConfigurationError(ValidationServiceException):
    """Raised when the service is configured in a way it cannot start with."""

    def __init__(self, message: str, code: str = "CONFIGURATION_ERROR"):
        """Initialize ConfigurationError."""
        super().__init__(message, code)


class InvalidSeverityConfigurationError(ConfigurationError):
    """Raised when the configured minimum severity cannot be parsed."""

    def __init__(self, value: str):
        """Initialize InvalidSeverityConfigurationError."""
        super().__init__(
            f"Configured minSeverityOutcome has an illegal value: {value}",
            "INVALID_MIN_SEVERITY",
        )
        self.value = value


class MissingMessageResourceError(ConfigurationError):
    """Raised when a message key has no template for the requested locale."""

    def __init__(self, key: str, locale: str):
        """Initialize MissingMessageResourceError."""
        super().__init__(
            f"Can't find resource for bundle Messages, key {key} (locale {locale})",
            "MISSING_MESSAGE_RESOURCE",
        )
        self.key = key
        self.locale = locale


class ProfileLoadError(ConfigurationError):
    """Raised when a definition file cannot be read."""

    def __init__(self, path: str, reason: str):
        """Initialize ProfileLoadError."""
        super().__init__(
            f"Unable to load definitions from {path}: {reason}", "PROFILE_LOAD_ERROR"
        )
        self.path = path


class SnapshotGenerationError(ValidationServiceException):
    """Raised when a snapshot cannot be derived for a differential profile."""

    def __init__(self, url: str, reason: str):
        """Initialize SnapshotGenerationError."""
        super().__init__(reason, "SNAPSHOT_GENERATION_FAILED")
        self.url = url
        self.reason = reason


class PipelineNotReadyError(ValidationServiceException):
    """Raised when a validation is requested before the pipeline is ready."""

    def __init__(self, message: str = "Validation pipeline is not initialized"):
        """Initialize PipelineNotReadyError."""
        super().__init__(message, "PIPELINE_NOT_READY")
