"""Configuration module for the FHIR validation service."""

from src.config.base import DEFAULT_SUPPRESSED_MESSAGES, Settings
from src.config.loader import get_settings

__all__ = ["DEFAULT_SUPPRESSED_MESSAGES", "Settings", "get_settings"]
