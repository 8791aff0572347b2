"""Wire models exchanged with the external invariant evaluator."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


@dataclass(frozen=True, slots=True)
class InvariantJob:
    """One constraint to evaluate against the data visible at ``path``."""

    root_data: Mapping[str, Any]
    data: Mapping[str, Any]
    expression: str
    key: str
    human: str
    severity: str
    source: str | None
    path: str

    @property
    def identity(self) -> tuple[str, str]:
        return (self.key, self.path)

    def to_payload(self) -> dict[str, Any]:
        """Serialise using the evaluator script's field names."""
        return {
            "rootData": self.root_data,
            "data": self.data,
            "path": self.path,
            "constraintExpression": self.expression,
            "constraintKey": self.key,
            "constraintHuman": self.human,
            "constraintSeverity": self.severity,
            "constraintSource": self.source or "",
            "parentPath": self.path,
        }


class InvariantResult(BaseModel):
    """Evaluator verdict for a single job."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    key: str
    path: str = ""
    passed: bool = Field(default=False, validation_alias=AliasChoices("passed", "result"))
    human: str = ""
    severity: str = "error"
    source: str | None = None

    @field_validator("passed", mode="before")
    @classmethod
    def _empty_is_failure(cls, value: Any) -> Any:
        # an empty FHIRPath collection arrives as null
        return False if value is None else value

    @property
    def identity(self) -> tuple[str, str]:
        return (self.key, self.path)


class EvaluationTrace(BaseModel):
    """Diagnostic lists reported by the evaluator; never used for verdicts."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    url: list[str] = Field(default_factory=list)
    ids: list[str] = Field(default_factory=list)
    unmatched: list[str] = Field(default_factory=list)


class EvaluationResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    results: list[InvariantResult] = Field(default_factory=list)
    trace: EvaluationTrace = Field(default_factory=EvaluationTrace)

    @property
    def failures(self) -> list[InvariantResult]:
        return [result for result in self.results if not result.passed]


__all__ = ["EvaluationResponse", "EvaluationTrace", "InvariantJob", "InvariantResult"]
