"""Contract shared by the invariant evaluator clients.

Key Responsibilities:
    - Define the :class:`InvariantEvaluator` protocol consumed by
      ``FHIRValidator``
    - Turn a raw result collection into :class:`EvaluationResponse` objects,
      keeping only results that answer a submitted job

Collaborators:
    - Upstream: ``validation.fhir.FHIRValidator``
    - Downstream: ``evaluation.node`` and ``evaluation.http`` implement the
      protocol

Thread Safety:
    - Helpers are pure functions
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

import structlog
from pydantic import ValidationError

from fhir_conformance.models.invariants import (
    EvaluationResponse,
    EvaluationTrace,
    InvariantJob,
    InvariantResult,
)
from fhir_conformance.utils.errors import EvaluatorError

logger = structlog.get_logger(__name__)


@runtime_checkable
class InvariantEvaluator(Protocol):
    """Evaluates a batch of FHIRPath invariants in a single call."""

    def evaluate(self, jobs: Sequence[InvariantJob]) -> EvaluationResponse:
        """Return one verdict per answered job.

        Raises:
            EvaluatorError: When the evaluator cannot be reached or its answer
                carries no recognizable result collection.
        """


def filter_matched(
    jobs: Iterable[InvariantJob], results: Iterable[InvariantResult]
) -> list[InvariantResult]:
    """Drop results whose ``(key, path)`` matches no submitted job."""
    submitted = {job.identity for job in jobs}
    matched: list[InvariantResult] = []
    for result in results:
        if result.identity in submitted:
            matched.append(result)
        else:
            logger.warning("evaluator.result.unmatched", key=result.key, path=result.path)
    return matched


def build_response(
    jobs: Sequence[InvariantJob],
    raw_results: Sequence[Any],
    trace: Mapping[str, Any] | None = None,
) -> EvaluationResponse:
    """Validate raw evaluator output into an :class:`EvaluationResponse`.

    Raises:
        EvaluatorError: When an entry is not a result object.
    """
    try:
        results = [InvariantResult.model_validate(item) for item in raw_results]
        parsed_trace = EvaluationTrace.model_validate(trace or {})
    except ValidationError as exc:
        raise EvaluatorError(
            "Evaluator returned malformed results", detail=str(exc)
        ) from exc
    return EvaluationResponse(results=filter_matched(jobs, results), trace=parsed_trace)


__all__ = ["InvariantEvaluator", "build_response", "filter_matched"]
