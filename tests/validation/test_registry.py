import pytest

from fhir_conformance.models import StructureDefinition, ValueSet, parse_definition
from fhir_conformance.utils.errors import DefinitionNotFoundError, RegistryFrozenError
from fhir_conformance.validation.registry import DefinitionRegistry, canonical_key
from tests.factories import BIRTH_PLACE, EXTENSION, GENDER_VALUE_SET, PATIENT


def test_canonical_keys():
    assert canonical_key(parse_definition(PATIENT)) == "Patient"
    assert canonical_key(parse_definition(EXTENSION)) == "Extension"
    assert (
        canonical_key(parse_definition(BIRTH_PLACE))
        == "http://hl7.org/fhir/StructureDefinition/patient-birthPlace"
    )
    assert (
        canonical_key(parse_definition(GENDER_VALUE_SET))
        == "http://hl7.org/fhir/ValueSet/administrative-gender"
    )


def test_resolve_returns_registered_definitions(registry):
    assert isinstance(registry.resolve("Patient"), StructureDefinition)
    assert isinstance(
        registry.resolve("http://hl7.org/fhir/ValueSet/administrative-gender"), ValueSet
    )
    assert "patient-birthPlace" not in registry


def test_resolve_unknown_key(registry):
    with pytest.raises(DefinitionNotFoundError) as exc:
        registry.resolve("Widget")
    assert exc.value.key == "Widget"
    assert registry.get("Widget") is None


def test_structure_definition_lookup_ignores_other_kinds(registry):
    assert registry.structure_definition("HumanName").id == "HumanName"
    assert registry.structure_definition("http://hl7.org/fhir/ValueSet/administrative-gender") is None


def test_frozen_registry_rejects_registration(registry):
    assert registry.frozen
    with pytest.raises(RegistryFrozenError):
        registry.register(parse_definition(PATIENT))


def test_later_registration_replaces_earlier():
    first = parse_definition(PATIENT)
    second = first.model_copy(update={"name": "PatientProfile"})
    registry = DefinitionRegistry([first, second]).freeze()

    assert len(registry) == 1
    assert registry.resolve("Patient").name == "PatientProfile"
    assert list(registry) == ["Patient"]
