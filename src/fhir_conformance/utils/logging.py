"""Structured logging and tracing for validation runs.

Key Responsibilities:
    - Route every ``structlog`` event through the standard library so one JSON
      handler renders validator events and third-party records alike
    - Tag the events of a validation run with its run id and resource type
    - Install the OpenTelemetry tracer provider used by the run spans

Collaborators:
    - Upstream: :func:`fhir_conformance.create_validator` configures both
      pipelines; ``validation.fhir`` opens a :func:`validation_run` per call
    - Downstream: ``structlog``, ``logging`` and the OpenTelemetry SDK

Thread Safety:
    - Run context lives in ``contextvars``, so concurrent runs never share it
    - The configure functions replace global state; call them once at startup
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterable, Iterator, MutableMapping
from contextlib import contextmanager
from typing import Any

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SpanExporter,
)
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from fhir_conformance.config.settings import LoggingSettings, TelemetrySettings

HANDLER_NAME = "fhir_conformance"
REDACTED = "***"


# ==============================================================================
# PROCESSORS
# ==============================================================================


class RedactFields:
    """Structlog processor replacing the values of sensitive keys."""

    def __init__(self, fields: Iterable[str]) -> None:
        self.fields = frozenset(field.lower() for field in fields)

    def __call__(
        self, _: Any, __: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        for key in event_dict:
            if key.lower() in self.fields:
                event_dict[key] = REDACTED
        return event_dict


def _level_value(level: int | str) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


# ==============================================================================
# CONFIGURATION
# ==============================================================================


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Render validator events as one JSON object per line on stdout.

    Handlers installed by other code (test capture included) stay attached;
    only the handler added by a previous call is replaced.
    """
    settings = settings or LoggingSettings()
    shared: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        RedactFields(settings.scrub_fields),
    ]
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(sort_keys=True, default=str),
            ],
        )
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(_level_value(settings.level))


def _span_exporter(telemetry: TelemetrySettings) -> SpanExporter | None:
    if telemetry.exporter == "otlp":
        if telemetry.endpoint:
            return OTLPSpanExporter(endpoint=telemetry.endpoint)
        return OTLPSpanExporter()
    if telemetry.exporter == "console":
        return ConsoleSpanExporter()
    return None


def configure_tracing(service_name: str, telemetry: TelemetrySettings) -> TracerProvider:
    """Install the tracer provider that receives the ``fhir.*`` spans.

    ``exporter="none"`` still installs a sampling provider, so span context
    propagates even when nothing is exported.
    """
    provider = TracerProvider(
        resource=Resource(attributes={"service.name": service_name}),
        sampler=TraceIdRatioBased(telemetry.sample_ratio),
    )
    exporter = _span_exporter(telemetry)
    if exporter is not None:
        provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    return provider


# ==============================================================================
# RUN CONTEXT
# ==============================================================================


@contextmanager
def validation_run(resource_type: str | None, run_id: str | None = None) -> Iterator[str]:
    """Bind ``run_id`` and ``resource_type`` to every event logged inside the block.

    The previous bindings are restored on exit, so nested or concurrent runs
    keep their own ids.
    """
    run_id = run_id or uuid.uuid4().hex
    tokens = structlog.contextvars.bind_contextvars(run_id=run_id, resource_type=resource_type)
    try:
        yield run_id
    finally:
        structlog.contextvars.reset_contextvars(**tokens)


def current_run_id() -> str | None:
    """Id of the validation run active in this context, if any."""
    return structlog.contextvars.get_contextvars().get("run_id")


__all__ = [
    "RedactFields",
    "configure_logging",
    "configure_tracing",
    "current_run_id",
    "validation_run",
]
