from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pytest

from fhir_conformance.models.invariants import (
    EvaluationResponse,
    EvaluationTrace,
    InvariantJob,
    InvariantResult,
)
from fhir_conformance.utils.errors import EvaluatorError
from fhir_conformance.validation.loader import InMemoryDefinitionSource, load_registry
from tests.factories import DEFINITIONS


class FakeEvaluator:
    """Answers every job, failing the keys listed in ``failing``."""

    def __init__(self, failing: Sequence[str] = (), *, error: str | None = None) -> None:
        self.failing = set(failing)
        self.error = error
        self.calls: list[list[InvariantJob]] = []

    def evaluate(self, jobs: Sequence[InvariantJob]) -> EvaluationResponse:
        self.calls.append(list(jobs))
        if self.error is not None:
            raise EvaluatorError(self.error)
        results = [
            InvariantResult(
                key=job.key,
                path=job.path,
                passed=job.key not in self.failing,
                human=job.human,
                severity=job.severity,
                source=job.source,
            )
            for job in jobs
        ]
        return EvaluationResponse(results=results, trace=EvaluationTrace())


@pytest.fixture
def definitions() -> list[dict[str, Any]]:
    return list(DEFINITIONS)


@pytest.fixture
def registry(definitions):
    return load_registry(InMemoryDefinitionSource(definitions))


@pytest.fixture
def evaluator() -> FakeEvaluator:
    return FakeEvaluator()


@pytest.fixture
def patient() -> dict[str, Any]:
    return {
        "resourceType": "Patient",
        "id": "example",
        "active": True,
        "name": [{"family": "Chalmers", "given": ["Peter", "James"]}],
        "gender": "male",
        "birthDate": "1974-12-25",
    }


@pytest.fixture
def evaluator_factory() -> type[FakeEvaluator]:
    return FakeEvaluator
