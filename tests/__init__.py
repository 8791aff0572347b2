"""Test-suite for fhir_conformance."""
