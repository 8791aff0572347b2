from fhir_conformance.models import parse_definition
from fhir_conformance.validation.classifier import classify_elements, is_nested_in_backbone
from tests.factories import PATIENT, element, structure_definition


def _ids(elements):
    return [item.id for item in elements]


def test_patient_elements_are_partitioned():
    groups = classify_elements(parse_definition(PATIENT).elements)

    assert groups.backbone_ids == {"Patient.contact"}
    assert _ids(groups.backbone_nested) == ["Patient.contact.name", "Patient.contact.gender"]
    assert _ids(groups.polymorphic) == ["Patient.deceased[x]"]
    assert "Patient.name" in _ids(groups.top_level)
    assert "Patient.contact" not in _ids(groups.top_level)


def test_each_element_lands_in_one_group():
    elements = parse_definition(PATIENT).elements
    groups = classify_elements(elements)

    grouped = (
        len(groups.top_level)
        + len(groups.backbone_nested)
        + len(groups.polymorphic)
        + len(groups.backbone_ids)
    )
    assert grouped == len(elements)


def test_choice_below_backbone_is_polymorphic():
    definition = parse_definition(
        structure_definition(
            "Sample",
            [
                element("Sample"),
                element("Sample.part", "BackboneElement", max="*"),
                element("Sample.part.value[x]", "string", "integer"),
            ],
        )
    )
    groups = classify_elements(definition.elements)

    assert _ids(groups.polymorphic) == ["Sample.part.value[x]"]
    assert groups.backbone_nested == []


def test_nested_backbone_match_requires_a_dot():
    assert is_nested_in_backbone("Patient.contact.name", {"Patient.contact"})
    assert not is_nested_in_backbone("Patient.contactPoint", {"Patient.contact"})
