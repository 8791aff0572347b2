import json

import httpx
import pytest

from fhir_conformance.config import EvaluatorSettings
from fhir_conformance.evaluation import (
    HttpFhirPathEvaluator,
    NodeFhirPathEvaluator,
    build_evaluator,
)
from fhir_conformance.models.invariants import InvariantJob
from fhir_conformance.utils.errors import EvaluatorError
from fhir_conformance.utils.http_client import CircuitBreakerConfig, HttpClient

URL = "https://fhirpath.example.org/evaluate"


def _jobs():
    return [
        InvariantJob({}, {}, "contact.exists()", "pat-1", "Contact", "error", "urn:src", "Patient"),
    ]


def _evaluator(handler, **kwargs):
    client = HttpClient(transport=httpx.MockTransport(handler), **kwargs)
    return HttpFhirPathEvaluator(URL, client=client)


def test_jobs_are_posted_and_results_read():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "results": [
                    {"key": "pat-1", "path": "Patient", "result": False, "human": "Contact", "source": "urn:src"},
                    {"key": "other", "path": "Patient", "result": False},
                ],
                "trace": {"ids": ["p1"]},
            },
        )

    evaluator = _evaluator(handler)
    response = evaluator.evaluate(_jobs())
    evaluator.close()

    assert seen["body"]["jobs"][0]["constraintKey"] == "pat-1"
    assert seen["body"]["jobs"][0]["constraintSource"] == "urn:src"
    assert [result.key for result in response.failures] == ["pat-1"]
    assert response.trace.ids == ["p1"]


def test_response_without_results_is_an_error():
    evaluator = _evaluator(lambda _: httpx.Response(200, json={"outcome": []}))
    with pytest.raises(EvaluatorError, match="no 'results' array"):
        evaluator.evaluate(_jobs())


def test_non_json_response_is_an_error():
    evaluator = _evaluator(lambda _: httpx.Response(200, text="<html>"))
    with pytest.raises(EvaluatorError, match="error parsing"):
        evaluator.evaluate(_jobs())


def test_server_error_is_not_retried():
    calls = {"count": 0}

    def handler(_: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(503)

    with pytest.raises(EvaluatorError, match="execution error"):
        _evaluator(handler).evaluate(_jobs())
    assert calls["count"] == 1


def test_open_circuit_is_an_evaluator_error():
    evaluator = _evaluator(
        lambda _: httpx.Response(500),
        circuit_breaker=CircuitBreakerConfig(failure_threshold=1, recovery_timeout=60.0),
    )
    with pytest.raises(EvaluatorError):
        evaluator.evaluate(_jobs())
    with pytest.raises(EvaluatorError, match="circuit breaker"):
        evaluator.evaluate(_jobs())


def test_build_evaluator_follows_backend():
    assert build_evaluator(EvaluatorSettings()) is None
    assert isinstance(
        build_evaluator(EvaluatorSettings(backend="node", script_path="evaluate.js")),
        NodeFhirPathEvaluator,
    )
    assert isinstance(
        build_evaluator(EvaluatorSettings(backend="http", url=URL)), HttpFhirPathEvaluator
    )
    assert build_evaluator(EvaluatorSettings(backend="none")) is None


def test_http_backend_requires_url():
    with pytest.raises(ValueError):
        EvaluatorSettings(backend="http")


def test_node_backend_requires_script_path():
    with pytest.raises(ValueError, match="script_path"):
        EvaluatorSettings(backend="node")
