"""HTTP client utilities with circuit breaker protection.

Key Responsibilities:
    - Construct a synchronous HTTP client with timeout and circuit breaker
      behaviour for calls to remote collaborators
    - Emit OpenTelemetry spans so evaluator round-trips remain observable

Collaborators:
    - Upstream: ``evaluation.http.HttpFhirPathEvaluator``
    - Downstream: Wraps `httpx` clients and `pybreaker` circuit breakers

Side Effects:
    - Opens network connections via `httpx`
    - Emits OpenTelemetry spans

Thread Safety:
    - `httpx.Client` and `pybreaker.CircuitBreaker` may be shared across
      threads; a client instance can serve concurrent validation runs

Note:
    Requests are never retried here. A failed evaluator call is fatal for the
    validation run that issued it, so the failure is surfaced immediately.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from opentelemetry import trace
from pybreaker import CircuitBreaker

# ==============================================================================
# TYPE DEFINITIONS
# ==============================================================================


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Configuration for the HTTP circuit breaker."""

    failure_threshold: int = 5
    recovery_timeout: float = 60.0


class HttpClient:
    """Synchronous HTTP client with pybreaker protection."""

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        circuit_breaker: CircuitBreakerConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Create an HTTP client.

        Args:
            timeout: Per-request timeout in seconds.
            circuit_breaker: Circuit breaker configuration; when omitted no
                breaker is created.
            transport: Optional httpx transport override used in tests.
        """
        self._client = httpx.Client(timeout=timeout, transport=transport)
        self._breaker = (
            CircuitBreaker(
                fail_max=circuit_breaker.failure_threshold,
                reset_timeout=circuit_breaker.recovery_timeout,
            )
            if circuit_breaker
            else None
        )
        self._tracer = trace.get_tracer(__name__)

    def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Issue an HTTP request guarded by the circuit breaker.

        Args:
            method: HTTP method (GET, POST, etc.).
            url: Fully qualified URL.
            **kwargs: Additional arguments forwarded to ``httpx.Client.request``.

        Returns:
            Response returned by ``httpx`` with a successful status.

        Raises:
            httpx.HTTPError: On transport failures and non-2xx responses.
            pybreaker.CircuitBreakerError: When the circuit breaker rejects the call.
        """

        def _perform() -> httpx.Response:
            with self._tracer.start_as_current_span("http.request") as span:
                span.set_attribute("http.method", method)
                span.set_attribute("http.url", url)
                response = self._client.request(method, url, **kwargs)
                span.set_attribute("http.status_code", response.status_code)
            response.raise_for_status()
            return response

        if self._breaker is not None:
            return self._breaker.call(_perform)
        return _perform()

    def post_json(self, url: str, payload: object) -> httpx.Response:
        """POST ``payload`` serialised as JSON."""
        return self.request("POST", url, json=payload)

    def close(self) -> None:
        """Release HTTP resources."""
        self._client.close()


__all__ = ["CircuitBreakerConfig", "HttpClient"]
