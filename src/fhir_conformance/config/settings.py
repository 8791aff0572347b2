"""Configuration system for the conformance validator."""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environments supported by the validator."""

    DEV = "dev"
    STAGING = "staging"
    PROD = "prod"


class TelemetrySettings(BaseModel):
    """Configuration block for OpenTelemetry export."""

    exporter: Literal["console", "otlp", "none"] = Field(
        default="none", description="Target exporter type"
    )
    endpoint: str | None = Field(default=None, description="Exporter endpoint")
    sample_ratio: float = Field(default=0.1, ge=0.0, le=1.0)


class LoggingSettings(BaseModel):
    """Structured logging configuration."""

    level: str = Field(default="INFO", description="Log level for application output")
    scrub_fields: Sequence[str] = Field(
        default_factory=lambda: ["authorization", "data", "document", "root_data", "token"],
        description="Event keys whose values are redacted",
    )


class ValidationSettings(BaseModel):
    """Knobs for the structural walk and outcome assembly."""

    definitions_path: Path | None = Field(
        default=None, description="Directory holding StructureDefinition/ValueSet/CodeSystem JSON"
    )
    max_depth: int = Field(
        default=64, ge=1, description="Maximum nesting depth descended into a document"
    )
    skipped_constraint_keys: Sequence[str] = Field(
        default_factory=lambda: ["ele-1", "txt-1", "txt-2"],
        description="Base-model invariants never sent to the evaluator",
    )
    issue_code_overrides: dict[str, str] = Field(
        default_factory=lambda: {"dom-6": "informational"},
        description="Constraint key to issue code used instead of 'invariant'",
    )


class EvaluatorSettings(BaseModel):
    """Connection details for the external FHIRPath invariant evaluator."""

    backend: Literal["node", "http", "none"] = Field(
        default="none", description="Which evaluator client to build"
    )
    node_executable: str = Field(default="node", description="Node.js binary")
    script_path: Path | None = Field(
        default=None, description="Evaluator script executed by Node.js"
    )
    payload_via: Literal["argv", "stdin"] = Field(
        default="argv", description="How the job batch is handed to the script"
    )
    timeout_seconds: float = Field(default=30.0, gt=0)
    url: str | None = Field(default=None, description="Endpoint for the HTTP evaluator")
    failure_threshold: int = Field(default=5, ge=1)
    recovery_timeout: float = Field(default=60.0, gt=0)

    @model_validator(mode="after")
    def _require_backend_target(self) -> EvaluatorSettings:
        if self.backend == "http" and not self.url:
            raise ValueError("evaluator.url is required when evaluator.backend is 'http'")
        if self.backend == "node" and self.script_path is None:
            raise ValueError("evaluator.script_path is required when evaluator.backend is 'node'")
        return self


class AppSettings(BaseSettings):
    """Top-level application settings."""

    environment: Environment = Environment.DEV
    debug: bool = False
    service_name: str = "fhir-conformance"
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)
    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    evaluator: EvaluatorSettings = Field(default_factory=EvaluatorSettings)

    model_config = SettingsConfigDict(env_prefix="FV_", env_nested_delimiter="__")


ENVIRONMENT_DEFAULTS: Mapping[Environment, dict[str, Any]] = {
    Environment.DEV: {
        "debug": True,
        "logging": {"level": "DEBUG"},
        "telemetry": {"exporter": "console"},
    },
    Environment.STAGING: {
        "telemetry": {"exporter": "otlp", "sample_ratio": 0.25},
    },
    Environment.PROD: {
        "logging": {"level": "WARNING"},
        "telemetry": {"exporter": "otlp", "sample_ratio": 0.05},
    },
}


def _deep_update(target: dict[str, Any], updates: Mapping[str, Any]) -> dict[str, Any]:
    for key, value in updates.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            target[key] = _deep_update(dict(current), value)
        else:
            target[key] = value
    return target


def _read_overrides(path: Path) -> Mapping[str, Any]:
    raw = yaml.safe_load(path.read_text()) if path.exists() else {}
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise RuntimeError(f"Invalid configuration: {path} must contain a mapping")
    return raw


def load_settings(
    environment: str | None = None, *, config_path: Path | None = None
) -> AppSettings:
    """Load settings with environment presets and optional YAML overrides applied.

    Precedence, lowest first: field defaults and ``FV_*`` variables, the
    environment preset, then the YAML file (``config_path`` or ``FV_CONFIG``).
    """
    env_value = (environment or os.getenv("FV_ENV", "dev")).lower()
    env = Environment(env_value)
    defaults = ENVIRONMENT_DEFAULTS.get(env, {})
    try:
        base_settings = AppSettings()
    except ValidationError as err:
        raise RuntimeError(f"Invalid configuration: {err}") from err
    merged = base_settings.model_dump()
    merged = _deep_update(merged, defaults)
    override_path = config_path or (Path(os.environ["FV_CONFIG"]) if os.getenv("FV_CONFIG") else None)
    if override_path is not None:
        merged = _deep_update(merged, _read_overrides(override_path))
    merged["environment"] = env
    try:
        return AppSettings.model_validate(merged)
    except ValidationError as err:
        raise RuntimeError(f"Invalid configuration: {err}") from err


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Cached accessor used by production code."""
    return load_settings()
