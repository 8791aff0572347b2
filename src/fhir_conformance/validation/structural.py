"""Recursive structural validation of a resource against its definitions.

Key Responsibilities:
    - Walk a document node and its StructureDefinition in parallel, applying
      required-field, cardinality, arity and primitive format rules
    - Descend into complex data types by resolving their definitions from the
      registry
    - Queue the invariants that apply at every visited node

Collaborators:
    - Upstream: ``validation.fhir.FHIRValidator`` creates one validator per run
    - Downstream: ``DefinitionRegistry`` (read only), ``classify_elements``,
      ``OutcomeBuilder``, ``InvariantCollector``

Side Effects:
    - Appends issues to the run's outcome and jobs to the run's collector

Thread Safety:
    - Not thread-safe; an instance holds run-local state. Several instances may
      share one frozen registry.

Note:
    Elements below backbone containers and choice-type ``[x]`` elements are
    classified but not validated yet; their handlers only log the visit.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import structlog

from fhir_conformance.models.definitions import (
    UNBOUNDED,
    ElementDefinition,
    StructureDefinition,
)
from fhir_conformance.models.outcome import IssueType
from fhir_conformance.utils.errors import DefinitionNotFoundError

from .classifier import classify_elements
from .invariants import InvariantCollector
from .nodes import NodeKind, node_kind, render_primitive
from .outcome_builder import OutcomeBuilder
from .primitives import (
    PatternError,
    compile_pattern,
    matches,
    normalize_type_code,
    pattern_for,
    value_element,
)
from .registry import DefinitionRegistry

logger = structlog.get_logger(__name__)

DEFAULT_MAX_DEPTH = 64


# ==============================================================================
# CARDINALITY HELPERS
# ==============================================================================


def parse_max(value: str | None) -> tuple[int, bool]:
    """Return ``(max, unbounded)`` for an ElementDefinition ``max`` string.

    Anything that is neither ``*`` nor an integer counts as ``1``.
    """
    if value == UNBOUNDED:
        return 0, True
    try:
        return int(value), False  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 1, False


def is_array_element(element: ElementDefinition) -> bool:
    _, base_unbounded = parse_max(element.base_max)
    max_items, unbounded = parse_max(element.max)
    return base_unbounded or unbounded or max_items > 1


def join_path(parent: str, field: str) -> str:
    return f"{parent}.{field}" if parent else field


def underscore_part(element_id: str) -> str | None:
    """The first ``_``-prefixed segment of an element id (primitive extension sibling)."""
    for part in element_id.split("."):
        if part.startswith("_"):
            return part
    return None


def field_name(element: ElementDefinition, definition: StructureDefinition) -> str | None:
    """Document key addressed by ``element``; ``None`` for the definition's root element."""
    for prefix in (definition.id, definition.type):
        if prefix and element.path.startswith(f"{prefix}."):
            return element.path[len(prefix) + 1 :]
    if "." not in element.path:
        return None
    return element.path


# ==============================================================================
# VALIDATOR
# ==============================================================================


class StructuralValidator:
    """Recursive validator for one run.

    Args:
        registry: Frozen registry resolving nested type definitions.
        builder: Outcome accumulator for this run.
        collector: Invariant job queue for this run.
        max_depth: Deepest nesting level descended into; deeper subtrees are
            reported and skipped.
    """

    def __init__(
        self,
        registry: DefinitionRegistry,
        builder: OutcomeBuilder,
        collector: InvariantCollector,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.registry = registry
        self.builder = builder
        self.collector = collector
        self.max_depth = max_depth

    def validate(
        self,
        root_data: Mapping[str, Any],
        data: Mapping[str, Any],
        root_definition: StructureDefinition,
        definition: StructureDefinition,
        path_prefix: str = "",
        *,
        depth: int = 0,
    ) -> None:
        """Validate ``data`` against ``definition`` and queue its invariants."""
        if not data:
            return
        if depth > self.max_depth:
            self.builder.add_issue(
                IssueType.TOO_COSTLY,
                f"Maximum nesting depth of {self.max_depth} exceeded at '{path_prefix}'",
                path_prefix,
                "Document is nested too deeply",
            )
            return

        logger.debug("validation.node", definition=definition.id, path=path_prefix, depth=depth)
        groups = classify_elements(definition.elements)
        for element in groups.top_level:
            if self._has_path(element, path_prefix):
                self.validate_element(
                    root_data, data, element, root_definition, definition, path_prefix, depth
                )
        for element in groups.backbone_nested:
            if self._has_path(element, path_prefix):
                self.validate_backbone_element(element, path_prefix)
        for element in groups.polymorphic:
            if self._has_path(element, path_prefix):
                self.validate_polymorphic_element(element, path_prefix)

        self.collector.collect(
            definition,
            root_data=root_data,
            data=data,
            path=path_prefix or root_definition.type or root_definition.id,
        )

    def _has_path(self, element: ElementDefinition, parent_path: str) -> bool:
        if element.path:
            return True
        self.builder.add_issue(
            IssueType.INVALID, "Element has an empty path", parent_path, "Path is empty"
        )
        return False

    # ------------------------------------------------------------------
    # Element dispatch
    # ------------------------------------------------------------------
    def validate_element(
        self,
        root_data: Mapping[str, Any],
        data: Mapping[str, Any],
        element: ElementDefinition,
        root_definition: StructureDefinition,
        definition: StructureDefinition,
        parent_path: str,
        depth: int,
    ) -> None:
        name = field_name(element, definition)
        if name is None:
            return
        full_path = join_path(parent_path, underscore_part(element.id) or name)

        if name not in data:
            if element.min > 0:
                self.builder.add_issue(
                    IssueType.REQUIRED,
                    f"Field '{full_path}' is required",
                    full_path,
                    "Field is required",
                )
            return

        if not element.type:
            self.builder.add_issue(
                IssueType.STRUCTURE,
                f"Element '{element.id}' declares no type",
                full_path,
                "Element has no type",
            )
            return

        self.validate_field(root_data, data[name], element, full_path, root_definition, depth)

    def validate_backbone_element(self, element: ElementDefinition, parent_path: str) -> None:
        logger.debug("validation.backbone_element.skipped", element=element.id, path=parent_path)

    def validate_polymorphic_element(self, element: ElementDefinition, parent_path: str) -> None:
        logger.debug("validation.choice_element.skipped", element=element.id, path=parent_path)

    def validate_field(
        self,
        root_data: Mapping[str, Any],
        value: Any,
        element: ElementDefinition,
        full_path: str,
        root_definition: StructureDefinition,
        depth: int,
    ) -> None:
        if is_array_element(element):
            self.validate_array(root_data, value, element, full_path, root_definition, depth)
        else:
            self.validate_value(root_data, value, element, full_path, root_definition, depth)

    def validate_array(
        self,
        root_data: Mapping[str, Any],
        value: Any,
        element: ElementDefinition,
        full_path: str,
        root_definition: StructureDefinition,
        depth: int,
    ) -> None:
        if node_kind(value) is not NodeKind.ARRAY:
            self.builder.add_issue(
                IssueType.INVALID,
                f"Field '{full_path}' must be an array",
                full_path,
                "Field must be an array",
            )
            return

        items: Sequence[Any] = value
        length = len(items)
        if length < element.min:
            self.builder.add_issue(
                IssueType.REQUIRED,
                f"Field '{full_path}' has too few items: minimum is {element.min}. "
                f"Found {length} elements",
                full_path,
                "Field has too few items",
            )
        max_items, unbounded = parse_max(element.max)
        if not unbounded and length > max_items:
            self.builder.add_issue(
                IssueType.INVALID,
                f"Field '{full_path}' has too many items: maximum is {max_items}. "
                f"Found {length} elements",
                full_path,
                "Field has too many items",
            )

        for index, item in enumerate(items):
            self.validate_value(
                root_data, item, element, f"{full_path}[{index}]", root_definition, depth
            )

    def validate_value(
        self,
        root_data: Mapping[str, Any],
        value: Any,
        element: ElementDefinition,
        full_path: str,
        root_definition: StructureDefinition,
        depth: int,
    ) -> None:
        kind = node_kind(value)
        if kind is NodeKind.NULL:
            self.builder.add_issue(
                IssueType.INVALID,
                f"All children of '{full_path}' must be present",
                full_path,
                "Field must be present",
            )
        elif kind is NodeKind.ARRAY:
            self.builder.add_issue(
                IssueType.INVALID,
                f"Field '{full_path}' must be a single value",
                full_path,
                "Field must be a single value",
            )
        elif kind is NodeKind.OBJECT:
            self.validate_complex_type(
                root_data, value, element.type[0].code, full_path, root_definition, depth
            )
        else:
            self.validate_primitive(value, element.type[0].code, full_path)

    # ------------------------------------------------------------------
    # Type validation
    # ------------------------------------------------------------------
    def validate_complex_type(
        self,
        root_data: Mapping[str, Any],
        value: Mapping[str, Any],
        type_code: str,
        path: str,
        root_definition: StructureDefinition,
        depth: int,
    ) -> None:
        try:
            nested = self.registry.resolve(type_code)
        except DefinitionNotFoundError:
            self.builder.add_issue(
                IssueType.INVALID,
                f"No structure definition found for type '{type_code}'",
                path,
                "No structure definition found",
            )
            return
        if not isinstance(nested, StructureDefinition):
            self.builder.add_issue(
                IssueType.INVALID,
                f"Invalid structure definition for type '{type_code}'",
                path,
                "Invalid structure definition",
            )
            return
        self.validate(root_data, value, root_definition, nested, path, depth=depth + 1)

    def validate_primitive(self, value: Any, type_code: str, path: str) -> None:
        type_code = normalize_type_code(type_code)
        definition = self.registry.structure_definition(type_code)
        if definition is None:
            self.builder.add_issue(
                IssueType.INVALID,
                f"No definition found for type '{type_code}'",
                path,
                "No definition found",
            )
            return

        element = value_element(definition)
        if element is None:
            self.builder.add_issue(
                IssueType.INVALID,
                f"No value element found for '{path}'",
                path,
                "No value element found",
            )
            return

        pattern = pattern_for(element)
        if pattern is None:
            self.builder.add_issue(
                IssueType.INVALID,
                f"No regex pattern found for '{path}'",
                path,
                "No regex pattern found",
            )
            return
        self.validate_pattern(render_primitive(value), pattern, path)

    def validate_pattern(self, value: str, pattern: str, path: str) -> None:
        try:
            compile_pattern(pattern)
        except PatternError as exc:
            self.builder.add_issue(
                IssueType.INVALID,
                f"Invalid regex pattern '{pattern}' for '{path}': {exc}",
                path,
                "Invalid regex pattern",
            )
            return
        if not matches(pattern, value):
            self.builder.add_issue(
                IssueType.VALUE,
                f"Field '{path}' does not match the expected pattern: {pattern}",
                path,
                "Field does not match the expected pattern",
            )


__all__ = [
    "DEFAULT_MAX_DEPTH",
    "StructuralValidator",
    "field_name",
    "is_array_element",
    "join_path",
    "parse_max",
    "underscore_part",
]
