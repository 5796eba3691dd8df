"""Base configuration settings."""

from typing import Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Message templates the structural engine emits for accepted ambiguity cases.
DEFAULT_SUPPRESSED_MESSAGES: Dict[str, str] = {
    "Reference_REF_CantMatchChoice": (
        "Bundle references may target several profiles; no single match is expected"
    ),
    "BUNDLE_BUNDLE_ENTRY_MULTIPLE_PROFILES": (
        "Entries intentionally declare more than one profile"
    ),
    "Validation_VAL_Profile_NoMatch": (
        "Profile choice is resolved by the notification category, not the engine"
    ),
    "This_element_does_not_match_any_known_slice_": (
        "Slicing is intentionally open for laboratory codings"
    ),
}


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "FHIR Validation Service"
    app_version: str = "0.1.0"
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "console"  # console or json

    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8080

    # Validation
    min_severity_outcome: str = Field(
        default="information",
        description="Lowest severity that is reported back to callers",
    )
    locale: str = Field(
        default="en_US", description="Locale used to render validation messages"
    )
    profiles_path: Optional[str] = Field(
        default=None,
        description="Directory of profiles, value sets, code systems, questionnaires",
    )
    suppressed_messages: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_SUPPRESSED_MESSAGES),
        description="Message template keys to suppress, mapped to the reason",
    )
    warm_up_on_startup: bool = True

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Only the renderers known to the logging setup are accepted."""
        if v not in ("console", "json"):
            raise ValueError(f"log_format must be 'console' or 'json', got {v!r}")
        return v
