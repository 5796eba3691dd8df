"""FHIR validation service."""
