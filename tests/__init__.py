"""FHIR validation service test suite."""
