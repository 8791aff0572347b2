"""Partition a snapshot's elements into validation groups.

A single left-to-right pass is enough because a backbone element always
precedes its children in a flattened snapshot.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from fhir_conformance.models.definitions import ElementDefinition

BACKBONE_TYPE_CODE = "BackboneElement"
CHOICE_MARKER = "[x]"


@dataclass(slots=True)
class ElementGroups:
    """Result of :func:`classify_elements`.

    Attributes:
        top_level: Directly validatable fields of the definition.
        backbone_nested: Fields declared below a backbone container.
        polymorphic: Choice-type fields (path contains ``[x]``).
        backbone_ids: Ids of the backbone containers themselves.
    """

    top_level: list[ElementDefinition] = field(default_factory=list)
    backbone_nested: list[ElementDefinition] = field(default_factory=list)
    polymorphic: list[ElementDefinition] = field(default_factory=list)
    backbone_ids: set[str] = field(default_factory=set)


def is_backbone_element(element: ElementDefinition) -> bool:
    return any(entry.code == BACKBONE_TYPE_CODE for entry in element.type)


def is_polymorphic(element: ElementDefinition) -> bool:
    return CHOICE_MARKER in element.path


def is_nested_in_backbone(path: str, backbone_ids: Iterable[str]) -> bool:
    return any(path.startswith(f"{backbone_id}.") for backbone_id in backbone_ids)


def classify_elements(elements: Iterable[ElementDefinition]) -> ElementGroups:
    """Split ``elements`` into the three validation groups, preserving order.

    The first matching rule wins for each element:

    1. a ``BackboneElement``-typed element only records its id;
    2. a path containing ``[x]`` goes to ``polymorphic``;
    3. a path below a recorded backbone id goes to ``backbone_nested``;
    4. anything else goes to ``top_level``.
    """
    groups = ElementGroups()
    for element in elements:
        if is_backbone_element(element):
            groups.backbone_ids.add(element.id)
        elif is_polymorphic(element):
            groups.polymorphic.append(element)
        elif is_nested_in_backbone(element.path, groups.backbone_ids):
            groups.backbone_nested.append(element)
        else:
            groups.top_level.append(element)
    return groups


__all__ = [
    "BACKBONE_TYPE_CODE",
    "CHOICE_MARKER",
    "ElementGroups",
    "classify_elements",
    "is_backbone_element",
    "is_nested_in_backbone",
    "is_polymorphic",
]
