"""Evaluate invariants by running the FHIRPath script under Node.js.

The script receives the serialised job batch and prints, among other debug
output, a ``Result:`` line followed by a JSON array of verdicts and optional
``TRACE:[url]``, ``TRACE:[ids]`` and ``TRACE:[unmatched]`` lists.
"""

from __future__ import annotations

import json
import re
import subprocess
from collections.abc import Sequence
from pathlib import Path

import structlog

from fhir_conformance.models.invariants import EvaluationResponse, InvariantJob
from fhir_conformance.utils.errors import EvaluatorError

from .base import build_response

logger = structlog.get_logger(__name__)

RESULT_PATTERN = re.compile(r"Result:\s*(\[[\s\S]*\])")
TRACE_PATTERNS: dict[str, re.Pattern[str]] = {
    name: re.compile(rf"TRACE:\[{name}\]\s*\[\s*([\s\S]*?)\s*\]", re.MULTILINE)
    for name in ("url", "ids", "unmatched")
}


def parse_trace(output: str) -> dict[str, list[str]]:
    """Extract the diagnostic trace lists from the script's stdout."""
    trace: dict[str, list[str]] = {}
    for name, pattern in TRACE_PATTERNS.items():
        match = pattern.search(output)
        if match is None:
            continue
        values = [value.strip().strip('"\\') for value in match.group(1).replace("\n", "").split(",")]
        trace[name] = [value for value in values if value]
    return trace


def parse_results(output: str) -> list[object]:
    """Return the decoded ``Result:`` array printed by the script.

    Raises:
        EvaluatorError: When no result array is present or it is not valid JSON.
    """
    match = RESULT_PATTERN.search(output)
    if match is None:
        raise EvaluatorError("no 'Result' array found in evaluator output")
    try:
        results = json.loads(match.group(1))
    except json.JSONDecodeError as exc:
        raise EvaluatorError(f"error parsing evaluator output: {exc}") from exc
    if not isinstance(results, list):
        raise EvaluatorError("evaluator 'Result' is not an array")
    return results


class NodeFhirPathEvaluator:
    """Run ``node <script> <payload>`` once per validation run."""

    def __init__(
        self,
        script_path: Path | str,
        *,
        executable: str = "node",
        timeout: float = 30.0,
        payload_via: str = "argv",
    ) -> None:
        if payload_via not in {"argv", "stdin"}:
            raise ValueError(f"Unsupported payload transport: {payload_via}")
        self.script_path = Path(script_path)
        self.executable = executable
        self.timeout = timeout
        self.payload_via = payload_via

    def evaluate(self, jobs: Sequence[InvariantJob]) -> EvaluationResponse:
        payload = json.dumps([job.to_payload() for job in jobs])
        command = [self.executable, str(self.script_path)]
        stdin: str | None = None
        if self.payload_via == "argv":
            command.append(payload)
        else:
            stdin = payload

        logger.debug("evaluator.node.start", script=str(self.script_path), jobs=len(jobs))
        try:
            completed = subprocess.run(
                command,
                input=stdin,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise EvaluatorError(f"execution error: {exc}") from exc
        except subprocess.TimeoutExpired as exc:
            raise EvaluatorError(
                f"execution error: evaluator timed out after {self.timeout} seconds"
            ) from exc

        if completed.returncode != 0:
            logger.warning(
                "evaluator.node.failed",
                returncode=completed.returncode,
                stderr=completed.stderr.strip()[:2000],
            )
            raise EvaluatorError(
                f"execution error: exit status {completed.returncode}",
                detail=completed.stderr.strip() or None,
            )

        results = parse_results(completed.stdout)
        return build_response(jobs, results, parse_trace(completed.stdout))


__all__ = ["NodeFhirPathEvaluator", "parse_results", "parse_trace"]
