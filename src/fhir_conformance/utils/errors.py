"""Problem detail helpers and the exception hierarchy of the validator.

Key Responsibilities:
    - Provide an RFC 7807 style data structure describing why the validator
      could not run, so callers can report it next to (not inside) an
      ``OperationOutcome``
    - Supply a base exception that carries problem details and the concrete
      exceptions raised by the registry, loader, evaluator clients and the
      validation entry-point

Collaborators:
    - Upstream: ``validation.fhir.FHIRValidator`` raises
      :class:`FatalValidationError`; registry and loader raise their own errors
    - Downstream: Callers serialise :class:`ProblemDetail` instances

Side Effects:
    - None; helpers are pure data containers

Thread Safety:
    - Thread-safe; instances are never shared between validation runs
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Mapping

__all__ = [
    "DefinitionLoadError",
    "DefinitionNotFoundError",
    "EvaluatorError",
    "FatalValidationError",
    "FoundationError",
    "ProblemDetail",
    "RegistryFrozenError",
]


@dataclass(slots=True)
class ProblemDetail:
    """Lightweight problem details object compliant with RFC 7807."""

    title: str
    status: int
    detail: str | None = None
    type: str = "about:blank"
    instance: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def model_dump(self) -> dict[str, Any]:
        """Return a dictionary representation with optional fields dropped."""
        payload = {key: value for key, value in asdict(self).items() if value is not None}
        if not payload.get("extra"):
            payload.pop("extra", None)
        return payload

    def to_response(self) -> dict[str, Any]:
        """Alias for model_dump used by existing call-sites."""
        return self.model_dump()


class FoundationError(RuntimeError):
    """Base exception that carries a :class:`ProblemDetail` instance."""

    def __init__(
        self,
        message: str,
        *,
        status: int = 500,
        detail: str | None = None,
        type: str = "about:blank",
        instance: str | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> None:
        """Initialise the exception with structured problem detail attributes.

        Args:
            message: Human readable error summary.
            status: Status code associated with the problem.
            detail: Optional detailed description of the failure.
            type: Problem type URI, defaults to ``about:blank``.
            instance: Optional URI reference identifying the specific occurrence.
            extra: Additional attributes included in the serialized payload.
        """
        super().__init__(message)
        self.problem = ProblemDetail(
            title=message,
            status=status,
            detail=detail,
            type=type,
            instance=instance,
            extra=extra or {},
        )


class FatalValidationError(FoundationError):
    """Raised when a resource cannot be validated at all.

    This is distinct from a resource that is invalid: an invalid resource
    produces an ``OperationOutcome`` with issues, whereas this error means no
    usable outcome exists.
    """

    def __init__(self, message: str, *, resource_type: str | None = None) -> None:
        extra = {"resourceType": resource_type} if resource_type else None
        super().__init__(message, status=422, extra=extra)
        self.resource_type = resource_type


class DefinitionNotFoundError(FoundationError, KeyError):
    """Raised when a definition key is not present in the registry."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Definition '{key}' is not registered", status=404)
        self.key = key

    def __str__(self) -> str:
        return str(self.problem.title)


class RegistryFrozenError(FoundationError):
    """Raised when a definition is registered after the load phase."""

    def __init__(self, key: str) -> None:
        super().__init__(
            f"Cannot register '{key}': definition registry is frozen", status=409
        )
        self.key = key


class DefinitionLoadError(FoundationError):
    """Raised when a definition file cannot be parsed or is of an unknown kind."""

    def __init__(self, message: str, *, source: str | None = None) -> None:
        super().__init__(message, status=500, instance=source)
        self.source = source


class EvaluatorError(FoundationError):
    """Raised when the external invariant evaluator fails or answers garbage."""

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message, status=502, detail=detail)
