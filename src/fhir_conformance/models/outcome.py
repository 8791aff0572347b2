"""OperationOutcome models produced by a validation run."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class IssueSeverity(str, Enum):
    """FHIR ``issue-severity`` values."""

    FATAL = "fatal"
    ERROR = "error"
    WARNING = "warning"
    INFORMATION = "information"

    @classmethod
    def coerce(cls, value: str | IssueSeverity | None) -> IssueSeverity:
        """Map free-form severities (e.g. from constraint metadata) onto the enum."""
        if isinstance(value, IssueSeverity):
            return value
        normalised = (value or "").strip().lower()
        if normalised in {"info", "informational"}:
            return cls.INFORMATION
        try:
            return cls(normalised)
        except ValueError:
            return cls.ERROR


class IssueType(str, Enum):
    """Subset of FHIR ``issue-type`` codes emitted by the validator."""

    INVALID = "invalid"
    STRUCTURE = "structure"
    REQUIRED = "required"
    VALUE = "value"
    INVARIANT = "invariant"
    NOT_FOUND = "not-found"
    TOO_COSTLY = "too-costly"
    EXCEPTION = "exception"
    INFORMATIONAL = "informational"


class Issue(BaseModel):
    """A single problem, or informational note, recorded during validation."""

    model_config = ConfigDict(frozen=True)

    severity: IssueSeverity
    code: IssueType
    diagnostics: str
    location: str | None = None
    details: str | None = None

    @property
    def expression(self) -> list[str]:
        return [self.location] if self.location else []

    def to_fhir(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "severity": self.severity.value,
            "code": self.code.value,
            "diagnostics": self.diagnostics,
        }
        if self.details:
            payload["details"] = {"text": self.details}
        if self.location:
            payload["expression"] = self.expression
            payload["location"] = [self.location]
        return payload


class OperationOutcome(BaseModel):
    """Ordered, append-only collection of issues for one validation run."""

    issue: list[Issue] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.issue)

    @property
    def is_valid(self) -> bool:
        """``True`` when no issue is an error or fatal."""
        return not any(
            item.severity in (IssueSeverity.ERROR, IssueSeverity.FATAL) for item in self.issue
        )

    def issues_at(self, location: str) -> list[Issue]:
        return [item for item in self.issue if item.location == location]

    def to_fhir(self) -> dict[str, Any]:
        """Render the FHIR ``OperationOutcome`` JSON representation."""
        return {
            "resourceType": "OperationOutcome",
            "issue": [item.to_fhir() for item in self.issue],
        }


__all__ = ["Issue", "IssueSeverity", "IssueType", "OperationOutcome"]
