import pytest

from fhir_conformance.models.invariants import InvariantResult
from fhir_conformance.models.outcome import Issue, IssueSeverity, IssueType, OperationOutcome


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("error", IssueSeverity.ERROR),
        ("Warning", IssueSeverity.WARNING),
        ("informational", IssueSeverity.INFORMATION),
        ("", IssueSeverity.ERROR),
        (None, IssueSeverity.ERROR),
    ],
)
def test_severity_coercion(raw, expected):
    assert IssueSeverity.coerce(raw) is expected


def test_issue_without_location_renders_minimal():
    issue = Issue(severity=IssueSeverity.FATAL, code=IssueType.EXCEPTION, diagnostics="boom")
    assert issue.to_fhir() == {"severity": "fatal", "code": "exception", "diagnostics": "boom"}


def test_outcome_validity_and_lookup():
    outcome = OperationOutcome()
    assert outcome.is_valid
    outcome.issue.append(
        Issue(severity=IssueSeverity.WARNING, code=IssueType.INFORMATIONAL, diagnostics="n", location="Patient")
    )
    assert outcome.is_valid
    outcome.issue.append(
        Issue(severity=IssueSeverity.ERROR, code=IssueType.REQUIRED, diagnostics="r", location="name")
    )
    assert not outcome.is_valid
    assert [issue.diagnostics for issue in outcome.issues_at("name")] == ["r"]


def test_invariant_result_accepts_evaluator_shape():
    result = InvariantResult.model_validate(
        {"result": True, "key": "pat-1", "path": "Patient", "extra": "ignored"}
    )
    assert result.passed
    assert result.identity == ("pat-1", "Patient")
