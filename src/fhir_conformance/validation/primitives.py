"""Format checks for FHIR primitive values.

A primitive type's StructureDefinition carries its lexical pattern on the
synthetic ``<type>.value`` element, as a ``regex`` extension on the element's
type. Patterns are matched against the whole rendered value using RE2, so
matching time stays linear in the length of the value whatever the pattern.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

import re2

from fhir_conformance.models.definitions import (
    FHIR_TYPE_EXTENSION_URL,
    REGEX_EXTENSION_URL,
    ElementDefinition,
    StructureDefinition,
)

SYSTEM_TYPE_CODES: dict[str, str] = {
    "http://hl7.org/fhirpath/System.String": "string",
    "http://hl7.org/fhirpath/System.Boolean": "boolean",
    "http://hl7.org/fhirpath/System.Integer": "integer",
    "http://hl7.org/fhirpath/System.Decimal": "decimal",
    "http://hl7.org/fhirpath/System.Date": "date",
    "http://hl7.org/fhirpath/System.DateTime": "dateTime",
    "http://hl7.org/fhirpath/System.Time": "time",
}

DEFAULT_STRING_PATTERN = r"[ \r\n\t\S]+"

PatternError = re2.error


def normalize_type_code(code: str) -> str:
    """Map FHIRPath ``System.*`` type URLs onto FHIR primitive type names."""
    return SYSTEM_TYPE_CODES.get(code, code)


def value_element(definition: StructureDefinition) -> ElementDefinition | None:
    return definition.element_by_id(f"{definition.id}.value")


def regex_for(element: ElementDefinition) -> str | None:
    """First ``regex`` extension found across the element's types."""
    for entry in element.type:
        pattern = entry.extension_value(REGEX_EXTENSION_URL)
        if pattern:
            return pattern
    return None


def fhir_type_for(element: ElementDefinition) -> str | None:
    for entry in element.type:
        fhir_type = entry.extension_value(FHIR_TYPE_EXTENSION_URL)
        if fhir_type:
            return fhir_type
    return None


def pattern_for(element: ElementDefinition) -> str | None:
    """Pattern to apply to a value element, falling back for string-like types."""
    pattern = regex_for(element)
    if pattern is None and fhir_type_for(element) == "string":
        pattern = DEFAULT_STRING_PATTERN
    return pattern


@lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> Any:
    """Compile a definition pattern with RE2.

    Raises:
        PatternError: When RE2 rejects the pattern.
    """
    return re2.compile(pattern)


def matches(pattern: str, value: str) -> bool:
    """Whole-value match, equivalent to anchoring the pattern at both ends."""
    return compile_pattern(pattern).fullmatch(value) is not None


__all__ = [
    "DEFAULT_STRING_PATTERN",
    "SYSTEM_TYPE_CODES",
    "PatternError",
    "compile_pattern",
    "fhir_type_for",
    "matches",
    "normalize_type_code",
    "pattern_for",
    "regex_for",
    "value_element",
]
