"""Assemble the OperationOutcome of a validation run."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from fhir_conformance.models.invariants import InvariantResult
from fhir_conformance.models.outcome import Issue, IssueSeverity, IssueType, OperationOutcome

# Constraint keys whose failures are reported with a softer issue code than
# "invariant". dom-6 ("a resource should have narrative") is best practice only.
DEFAULT_ISSUE_CODE_OVERRIDES: Mapping[str, IssueType] = {"dom-6": IssueType.INFORMATIONAL}


class OutcomeBuilder:
    """Append-only accumulator for structural and invariant issues."""

    def __init__(
        self,
        outcome: OperationOutcome | None = None,
        *,
        code_overrides: Mapping[str, IssueType | str] | None = None,
    ) -> None:
        self.outcome = outcome if outcome is not None else OperationOutcome()
        overrides = DEFAULT_ISSUE_CODE_OVERRIDES if code_overrides is None else code_overrides
        self._code_overrides = {key: IssueType(code) for key, code in overrides.items()}

    def add_issue(
        self,
        code: IssueType | str,
        diagnostics: str,
        location: str | None = None,
        details: str | None = None,
        severity: IssueSeverity | str = IssueSeverity.ERROR,
    ) -> Issue:
        issue = Issue(
            severity=IssueSeverity.coerce(severity),
            code=IssueType(code),
            diagnostics=diagnostics,
            location=location or None,
            details=details or None,
        )
        self.outcome.issue.append(issue)
        return issue

    def add_exception(self, message: str) -> Issue:
        """Record that the run could not complete (e.g. the evaluator failed)."""
        return self.add_issue(IssueType.EXCEPTION, message, severity=IssueSeverity.FATAL)

    def code_for(self, key: str) -> IssueType:
        return self._code_overrides.get(key, IssueType.INVARIANT)

    def add_invariant_failure(self, result: InvariantResult) -> Issue:
        if result.source:
            diagnostics = f"Failed constraint '{result.key}' (source: {result.source})"
        else:
            diagnostics = f"Failed constraint '{result.key}'"
        return self.add_issue(
            self.code_for(result.key),
            diagnostics,
            location=result.path,
            details=f"{result.key}: {result.human}",
            severity=result.severity,
        )

    def finalize(self, results: Iterable[InvariantResult] = ()) -> OperationOutcome:
        """Append failed invariants, or a success note when nothing was recorded."""
        for result in results:
            if not result.passed:
                self.add_invariant_failure(result)
        if not self.outcome.issue:
            self.add_issue(
                IssueType.INFORMATIONAL,
                "Validation successful",
                severity=IssueSeverity.INFORMATION,
            )
        return self.outcome


__all__ = ["DEFAULT_ISSUE_CODE_OVERRIDES", "OutcomeBuilder"]
