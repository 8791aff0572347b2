"""Conformance resource models: StructureDefinition, ValueSet and CodeSystem.

Only the parts of each resource that the validator reads are modelled; every
other member of the published JSON is ignored on parse. Models are frozen so
that a populated registry can be shared by concurrent validation runs.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from fhir_conformance.utils.errors import DefinitionLoadError

REGEX_EXTENSION_URL = "http://hl7.org/fhir/StructureDefinition/regex"
FHIR_TYPE_EXTENSION_URL = "http://hl7.org/fhir/StructureDefinition/structuredefinition-fhir-type"
UNBOUNDED = "*"


class DefinitionModel(BaseModel):
    """Base model for conformance resources read from FHIR JSON."""

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class Extension(DefinitionModel):
    url: str
    value_string: str | None = None
    value_url: str | None = None
    value_uri: str | None = None
    value_code: str | None = None
    value_integer: int | None = None
    value_boolean: bool | None = None


class TypeRef(DefinitionModel):
    """One entry of ``ElementDefinition.type``."""

    code: str
    extension: tuple[Extension, ...] = ()
    profile: tuple[str, ...] = ()
    target_profile: tuple[str, ...] = ()

    def extension_value(self, url: str) -> str | None:
        """Return the first string-like value of the extension with ``url``."""
        for extension in self.extension:
            if extension.url == url:
                return extension.value_string or extension.value_url or extension.value_uri
        return None


class ElementBase(DefinitionModel):
    path: str
    min: int = 0
    max: str = "1"


class Constraint(DefinitionModel):
    """A named invariant attached to an element."""

    key: str
    severity: str = "error"
    human: str = ""
    expression: str | None = None
    xpath: str | None = None
    source: str | None = None


class Binding(DefinitionModel):
    strength: str | None = None
    value_set: str | None = None
    description: str | None = None


class ElementDefinition(DefinitionModel):
    """A single field declaration of a snapshot, addressed by a dotted path."""

    id: str = ""
    path: str = ""
    short: str | None = None
    min: int = 0
    max: str = "1"
    base: ElementBase | None = None
    type: tuple[TypeRef, ...] = ()
    constraint: tuple[Constraint, ...] = ()
    binding: Binding | None = None
    content_reference: str | None = None

    @property
    def type_codes(self) -> list[str]:
        return [entry.code for entry in self.type]

    @property
    def base_max(self) -> str | None:
        return self.base.max if self.base is not None else None


class ElementList(DefinitionModel):
    element: tuple[ElementDefinition, ...] = ()


class StructureDefinition(DefinitionModel):
    """Declarative description of a resource or data type."""

    resource_type: Literal["StructureDefinition"] = "StructureDefinition"
    id: str
    url: str = ""
    name: str | None = None
    version: str | None = None
    status: str | None = None
    kind: str | None = None
    abstract: bool = False
    type: str = ""
    base_definition: str | None = None
    derivation: str | None = None
    snapshot: ElementList | None = None
    differential: ElementList | None = None

    @property
    def elements(self) -> tuple[ElementDefinition, ...]:
        """Snapshot elements, empty when the definition ships no snapshot."""
        return self.snapshot.element if self.snapshot is not None else ()

    def element_by_id(self, element_id: str) -> ElementDefinition | None:
        for element in self.elements:
            if element.id == element_id:
                return element
        return None

    @property
    def root_element(self) -> ElementDefinition | None:
        """The element whose id equals the definition id."""
        return self.element_by_id(self.id)


class Concept(DefinitionModel):
    code: str
    display: str | None = None
    definition: str | None = None
    concept: tuple[Concept, ...] = ()


class ComposeInclude(DefinitionModel):
    system: str | None = None
    version: str | None = None
    concept: tuple[Concept, ...] = ()
    value_set: tuple[str, ...] = ()


class Compose(DefinitionModel):
    include: tuple[ComposeInclude, ...] = ()
    exclude: tuple[ComposeInclude, ...] = ()


class ValueSet(DefinitionModel):
    resource_type: Literal["ValueSet"] = "ValueSet"
    id: str = ""
    url: str
    version: str | None = None
    name: str | None = None
    status: str | None = None
    compose: Compose | None = None


class CodeSystem(DefinitionModel):
    resource_type: Literal["CodeSystem"] = "CodeSystem"
    id: str = ""
    url: str
    version: str | None = None
    name: str | None = None
    status: str | None = None
    case_sensitive: bool | None = None
    content: str | None = None
    concept: tuple[Concept, ...] = ()


Definition = Union[StructureDefinition, ValueSet, CodeSystem]

_DEFINITION_MODELS: dict[str, type[DefinitionModel]] = {
    "StructureDefinition": StructureDefinition,
    "ValueSet": ValueSet,
    "CodeSystem": CodeSystem,
}

DEFINITION_RESOURCE_TYPES = frozenset(_DEFINITION_MODELS)


def parse_definition(data: Mapping[str, Any], *, source: str | None = None) -> Definition:
    """Build the model matching ``data["resourceType"]``.

    Raises:
        DefinitionLoadError: When the resource type is missing, unsupported or
            the payload does not satisfy the model.
    """
    resource_type = data.get("resourceType")
    if not isinstance(resource_type, str):
        raise DefinitionLoadError("Missing or invalid 'resourceType' in definition", source=source)
    model = _DEFINITION_MODELS.get(resource_type)
    if model is None:
        raise DefinitionLoadError(f"Unknown resourceType: {resource_type}", source=source)
    try:
        return model.model_validate(data)  # type: ignore[return-value]
    except ValidationError as exc:
        raise DefinitionLoadError(
            f"Failed to parse {resource_type}: {exc.error_count()} validation error(s)",
            source=source,
        ) from exc


__all__ = [
    "DEFINITION_RESOURCE_TYPES",
    "FHIR_TYPE_EXTENSION_URL",
    "REGEX_EXTENSION_URL",
    "UNBOUNDED",
    "Binding",
    "CodeSystem",
    "Compose",
    "ComposeInclude",
    "Concept",
    "Constraint",
    "Definition",
    "ElementBase",
    "ElementDefinition",
    "ElementList",
    "Extension",
    "StructureDefinition",
    "TypeRef",
    "ValueSet",
    "parse_definition",
]
