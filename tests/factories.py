"""Builders for the small StructureDefinition set used across the test-suite."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from fhir_conformance.models.definitions import FHIR_TYPE_EXTENSION_URL, REGEX_EXTENSION_URL

SYSTEM_STRING = "http://hl7.org/fhirpath/System.String"
SYSTEM_BOOLEAN = "http://hl7.org/fhirpath/System.Boolean"
SYSTEM_INTEGER = "http://hl7.org/fhirpath/System.Integer"
SYSTEM_DATE = "http://hl7.org/fhirpath/System.Date"

ELE_1 = {
    "key": "ele-1",
    "severity": "error",
    "human": "All FHIR elements must have a @value or children",
    "expression": "hasValue() or (children().count() > id.count())",
    "source": "http://hl7.org/fhir/StructureDefinition/Element",
}


def element(
    path: str,
    *types: str,
    min: int = 0,
    max: str = "1",
    base_max: str | None = None,
    element_id: str | None = None,
    constraint: Sequence[dict[str, Any]] = (),
) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": element_id or path,
        "path": path,
        "min": min,
        "max": max,
        "base": {"path": path, "min": min, "max": base_max or max},
    }
    if types:
        data["type"] = [{"code": code} for code in types]
    if constraint:
        data["constraint"] = list(constraint)
    return data


def structure_definition(
    sd_id: str,
    elements: Sequence[dict[str, Any]],
    *,
    sd_type: str | None = None,
    kind: str = "complex-type",
    url: str | None = None,
) -> dict[str, Any]:
    return {
        "resourceType": "StructureDefinition",
        "id": sd_id,
        "url": url or f"http://hl7.org/fhir/StructureDefinition/{sd_id}",
        "name": sd_id,
        "status": "active",
        "kind": kind,
        "abstract": False,
        "type": sd_type or sd_id,
        "snapshot": {"element": list(elements)},
    }


def primitive_definition(
    name: str, system_code: str, *, regex: str | None = None, fhir_type: str | None = None
) -> dict[str, Any]:
    extensions = [{"url": FHIR_TYPE_EXTENSION_URL, "valueUrl": fhir_type or name}]
    if regex is not None:
        extensions.append({"url": REGEX_EXTENSION_URL, "valueString": regex})
    value = element(f"{name}.value", max="1")
    value["type"] = [{"code": system_code, "extension": extensions}]
    return structure_definition(
        name,
        [
            element(name, max="*", constraint=[ELE_1]),
            element(f"{name}.id", SYSTEM_STRING),
            value,
        ],
        kind="primitive-type",
    )


PRIMITIVES = [
    primitive_definition("string", SYSTEM_STRING),
    primitive_definition("code", SYSTEM_STRING, regex=r"[^\s]+(\s[^\s]+)*"),
    primitive_definition("id", SYSTEM_STRING, regex=r"[A-Za-z0-9\-\.]{1,64}"),
    primitive_definition("boolean", SYSTEM_BOOLEAN, regex="true|false"),
    primitive_definition("integer", SYSTEM_INTEGER, regex=r"-?([0]|([1-9][0-9]*))"),
    primitive_definition(
        "date",
        SYSTEM_DATE,
        regex=r"([0-9]([0-9]([0-9][1-9]|[1-9]0)|[1-9]00)|[1-9]000)"
        r"(-(0[1-9]|1[0-2])(-(0[1-9]|[1-2][0-9]|3[0-1]))?)?",
    ),
]

HUMAN_NAME = structure_definition(
    "HumanName",
    [
        element(
            "HumanName",
            max="*",
            constraint=[
                ELE_1,
                {
                    "key": "hn-1",
                    "severity": "error",
                    "human": "A name needs a family or a given part",
                    "expression": "family.exists() or given.exists()",
                },
            ],
        ),
        element("HumanName.family", "string"),
        element("HumanName.given", "string", max="*"),
    ],
)

IDENTIFIER = structure_definition(
    "Identifier",
    [
        element("Identifier", max="*", constraint=[ELE_1]),
        element("Identifier.use", "code"),
        element("Identifier.system", "string"),
        element("Identifier.value", "string"),
    ],
)

REFERENCE = structure_definition(
    "Reference",
    [
        element("Reference", max="*", constraint=[ELE_1]),
        element("Reference.reference", "string"),
        element("Reference.display", "string"),
    ],
)

PATIENT = structure_definition(
    "Patient",
    [
        element(
            "Patient",
            max="*",
            constraint=[
                ELE_1,
                {
                    "key": "dom-6",
                    "severity": "warning",
                    "human": "A resource should have narrative for robust management",
                    "expression": "text.`div`.exists()",
                    "source": "http://hl7.org/fhir/StructureDefinition/DomainResource",
                },
                {
                    "key": "pat-1",
                    "severity": "error",
                    "human": "SHALL at least contain a contact's details or a reference to an organization",
                    "expression": "contact.all(name.exists() or organization.exists())",
                },
            ],
        ),
        element("Patient.id", SYSTEM_STRING),
        element("Patient.identifier", "Identifier", max="*"),
        element("Patient.active", "boolean"),
        element("Patient.name", "HumanName", min=1, max="*"),
        element("Patient.gender", "code"),
        element("Patient.birthDate", "date"),
        element("Patient.multipleBirthInteger", "integer"),
        element("Patient.deceased[x]", "boolean", "dateTime"),
        element("Patient.contact", "BackboneElement", max="*"),
        element("Patient.contact.name", "HumanName"),
        element("Patient.contact.gender", "code"),
        element("Patient.generalPractitioner", "Reference", max="2", base_max="*"),
    ],
    kind="resource",
)

EXTENSION = structure_definition("Extension", [element("Extension", max="*")])

BIRTH_PLACE = structure_definition(
    "patient-birthPlace",
    [element("Extension", max="1")],
    sd_type="Extension",
    url="http://hl7.org/fhir/StructureDefinition/patient-birthPlace",
)

GENDER_VALUE_SET = {
    "resourceType": "ValueSet",
    "id": "administrative-gender",
    "url": "http://hl7.org/fhir/ValueSet/administrative-gender",
    "status": "active",
}

DEFINITIONS = [*PRIMITIVES, HUMAN_NAME, IDENTIFIER, REFERENCE, PATIENT, EXTENSION, BIRTH_PLACE, GENDER_VALUE_SET]


