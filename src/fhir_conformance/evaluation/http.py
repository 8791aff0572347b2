"""Evaluate invariants through a remote FHIRPath evaluation service.

Request body: ``{"jobs": [<job payload>, ...]}`` using the same field names
as the Node.js script. Response body: ``{"results": [...], "trace": {...}}``;
the envelope is checked against :data:`RESPONSE_SCHEMA` before any result is
read.
"""

from __future__ import annotations

from collections.abc import Sequence

import httpx
import structlog
from jsonschema import Draft202012Validator
from pybreaker import CircuitBreakerError

from fhir_conformance.models.invariants import EvaluationResponse, InvariantJob
from fhir_conformance.utils.errors import EvaluatorError
from fhir_conformance.utils.http_client import CircuitBreakerConfig, HttpClient

from .base import build_response

logger = structlog.get_logger(__name__)

_STRING_LIST: dict[str, object] = {"type": "array", "items": {"type": "string"}}

RESPONSE_SCHEMA: dict[str, object] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["results"],
    "properties": {
        "results": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["key"],
                "properties": {
                    "key": {"type": "string"},
                    "path": {"type": "string"},
                    "result": {"type": ["boolean", "null"]},
                    "passed": {"type": ["boolean", "null"]},
                    "human": {"type": "string"},
                    "severity": {"type": "string"},
                    "source": {"type": ["string", "null"]},
                },
            },
        },
        "trace": {
            "type": "object",
            "properties": {"url": _STRING_LIST, "ids": _STRING_LIST, "unmatched": _STRING_LIST},
        },
    },
}

_RESPONSE_VALIDATOR = Draft202012Validator(RESPONSE_SCHEMA)


class HttpFhirPathEvaluator:
    """POST the job batch to ``url`` and read back the verdicts."""

    def __init__(self, url: str, *, client: HttpClient | None = None, timeout: float = 30.0) -> None:
        self.url = url
        self._client = client or HttpClient(
            timeout=timeout, circuit_breaker=CircuitBreakerConfig()
        )

    def evaluate(self, jobs: Sequence[InvariantJob]) -> EvaluationResponse:
        body = {"jobs": [job.to_payload() for job in jobs]}
        try:
            response = self._client.post_json(self.url, body)
            data = response.json()
        except CircuitBreakerError as exc:
            raise EvaluatorError("evaluator circuit breaker is open") from exc
        except httpx.HTTPError as exc:
            raise EvaluatorError(f"execution error: {exc}") from exc
        except ValueError as exc:
            raise EvaluatorError(f"error parsing evaluator response: {exc}") from exc

        errors = sorted(_RESPONSE_VALIDATOR.iter_errors(data), key=lambda error: list(error.path))
        if errors:
            messages = [
                f"{'.'.join(str(part) for part in error.path) or 'root'}: {error.message}"
                for error in errors
            ]
            logger.warning("evaluator.http.invalid_response", errors=messages)
            raise EvaluatorError("no 'results' array found in evaluator response", detail="; ".join(messages))

        return build_response(jobs, data["results"], data.get("trace"))

    def close(self) -> None:
        self._client.close()


__all__ = ["RESPONSE_SCHEMA", "HttpFhirPathEvaluator"]
