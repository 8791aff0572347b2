"""StructureDefinition-driven validation of FHIR resources."""

from .classifier import ElementGroups, classify_elements
from .fhir import FHIR_R4_RESOURCE_TYPES, FHIRValidator
from .invariants import InvariantCollector
from .loader import (
    DefinitionSource,
    DirectoryDefinitionSource,
    InMemoryDefinitionSource,
    load_registry,
)
from .outcome_builder import OutcomeBuilder
from .registry import DefinitionRegistry, canonical_key
from .structural import StructuralValidator

__all__ = [
    "FHIR_R4_RESOURCE_TYPES",
    "DefinitionRegistry",
    "DefinitionSource",
    "DirectoryDefinitionSource",
    "ElementGroups",
    "FHIRValidator",
    "InMemoryDefinitionSource",
    "InvariantCollector",
    "OutcomeBuilder",
    "StructuralValidator",
    "canonical_key",
    "classify_elements",
    "load_registry",
]
