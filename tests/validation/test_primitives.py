import time

import pytest

from fhir_conformance.models import parse_definition
from fhir_conformance.validation.primitives import (
    DEFAULT_STRING_PATTERN,
    PatternError,
    compile_pattern,
    matches,
    normalize_type_code,
    pattern_for,
    value_element,
)
from tests.factories import PRIMITIVES


def _value_element(name):
    definition = next(parse_definition(item) for item in PRIMITIVES if item["id"] == name)
    return value_element(definition)


def test_system_types_are_normalized():
    assert normalize_type_code("http://hl7.org/fhirpath/System.String") == "string"
    assert normalize_type_code("http://hl7.org/fhirpath/System.DateTime") == "dateTime"
    assert normalize_type_code("HumanName") == "HumanName"


def test_pattern_from_regex_extension():
    assert pattern_for(_value_element("boolean")) == "true|false"


def test_string_falls_back_to_default_pattern():
    assert pattern_for(_value_element("string")) == DEFAULT_STRING_PATTERN
    assert matches(DEFAULT_STRING_PATTERN, "Peter James")
    assert not matches(DEFAULT_STRING_PATTERN, "")


@pytest.mark.parametrize(
    ("value", "expected"),
    [("true", True), ("false", True), ("truex", False), ("xtrue", False), ("True", False)],
)
def test_patterns_are_anchored_at_both_ends(value, expected):
    assert matches("true|false", value) is expected


def test_invalid_pattern_raises():
    with pytest.raises(PatternError):
        compile_pattern("([a-z]")


def test_nested_quantifier_pattern_is_matched_in_linear_time():
    base64 = r"(\s*([0-9a-zA-Z\+/=]){4}\s*)+"
    assert matches(base64, "AAAA  " * 17)

    started = time.perf_counter()
    assert not matches(base64, "AAAA  " * 200 + "!")
    assert time.perf_counter() - started < 1.0
