"""Data models shared by the registry, the validator and its callers."""

from .definitions import (
    CodeSystem,
    Constraint,
    Definition,
    ElementDefinition,
    StructureDefinition,
    TypeRef,
    ValueSet,
    parse_definition,
)
from .invariants import EvaluationResponse, EvaluationTrace, InvariantJob, InvariantResult
from .outcome import Issue, IssueSeverity, IssueType, OperationOutcome

__all__ = [
    "CodeSystem",
    "Constraint",
    "Definition",
    "ElementDefinition",
    "EvaluationResponse",
    "EvaluationTrace",
    "InvariantJob",
    "InvariantResult",
    "Issue",
    "IssueSeverity",
    "IssueType",
    "OperationOutcome",
    "StructureDefinition",
    "TypeRef",
    "ValueSet",
    "parse_definition",
]
