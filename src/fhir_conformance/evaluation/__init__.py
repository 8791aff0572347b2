"""Clients for the external FHIRPath invariant evaluator."""

from __future__ import annotations

from fhir_conformance.config.settings import EvaluatorSettings
from fhir_conformance.utils.http_client import CircuitBreakerConfig, HttpClient

from .base import InvariantEvaluator, build_response, filter_matched
from .http import HttpFhirPathEvaluator
from .node import NodeFhirPathEvaluator


def build_evaluator(settings: EvaluatorSettings) -> InvariantEvaluator | None:
    """Create the evaluator client selected by ``settings.backend``.

    Returns ``None`` for the ``none`` backend, which disables invariant checks.
    """
    if settings.backend == "node":
        return NodeFhirPathEvaluator(
            settings.script_path,
            executable=settings.node_executable,
            timeout=settings.timeout_seconds,
            payload_via=settings.payload_via,
        )
    if settings.backend == "http":
        client = HttpClient(
            timeout=settings.timeout_seconds,
            circuit_breaker=CircuitBreakerConfig(
                failure_threshold=settings.failure_threshold,
                recovery_timeout=settings.recovery_timeout,
            ),
        )
        return HttpFhirPathEvaluator(settings.url or "", client=client)
    return None


__all__ = [
    "HttpFhirPathEvaluator",
    "InvariantEvaluator",
    "NodeFhirPathEvaluator",
    "build_evaluator",
    "build_response",
    "filter_matched",
]
