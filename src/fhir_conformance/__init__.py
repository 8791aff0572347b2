"""FHIR conformance validation driven by StructureDefinitions.

Key Responsibilities:
    - Expose the validator, the definition registry and the outcome models
    - Provide :func:`create_validator`, the one-call bootstrap used by
      embedding applications

Collaborators:
    - Upstream: Applications import from this module
    - Downstream: ``config``, ``validation``, ``evaluation`` and ``utils``

Side Effects:
    - :func:`create_validator` configures logging and tracing globally

Example:
    >>> from fhir_conformance import create_validator
    >>> validator = create_validator()
    >>> outcome = validator.validate_resource({"resourceType": "Patient"})
"""

from __future__ import annotations

from .config import AppSettings, get_settings
from .models import Issue, IssueSeverity, IssueType, OperationOutcome
from .utils.errors import (
    DefinitionLoadError,
    DefinitionNotFoundError,
    EvaluatorError,
    FatalValidationError,
)
from .utils.logging import configure_logging, configure_tracing
from .validation import DefinitionRegistry, FHIRValidator, load_registry


def create_validator(settings: AppSettings | None = None) -> FHIRValidator:
    """Configure observability and build a validator from settings.

    Args:
        settings: Application settings; :func:`get_settings` when omitted.

    Returns:
        A validator bound to a frozen registry loaded from
        ``settings.validation.definitions_path``.
    """
    settings = settings or get_settings()
    configure_logging(settings.logging)
    configure_tracing(settings.service_name, settings.telemetry)
    return FHIRValidator.from_settings(settings)


__all__ = [
    "AppSettings",
    "DefinitionLoadError",
    "DefinitionNotFoundError",
    "DefinitionRegistry",
    "EvaluatorError",
    "FHIRValidator",
    "FatalValidationError",
    "Issue",
    "IssueSeverity",
    "IssueType",
    "OperationOutcome",
    "create_validator",
    "load_registry",
]
