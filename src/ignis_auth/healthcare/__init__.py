"""FHIR access for patient identity data."""
