"""Utility modules shared by the validator components."""

from .errors import (
    DefinitionLoadError,
    DefinitionNotFoundError,
    EvaluatorError,
    FatalValidationError,
    FoundationError,
    ProblemDetail,
    RegistryFrozenError,
)

__all__ = [
    "DefinitionLoadError",
    "DefinitionNotFoundError",
    "EvaluatorError",
    "FatalValidationError",
    "FoundationError",
    "ProblemDetail",
    "RegistryFrozenError",
]
