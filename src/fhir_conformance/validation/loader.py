"""Load conformance definitions from disk into a frozen registry."""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping, Sequence
from pathlib import Path
from typing import Any, Protocol

import structlog

from fhir_conformance.models.definitions import (
    DEFINITION_RESOURCE_TYPES,
    Definition,
    parse_definition,
)
from fhir_conformance.utils.errors import DefinitionLoadError

from .registry import DefinitionRegistry

logger = structlog.get_logger(__name__)


class DefinitionSource(Protocol):
    """Anything able to produce the full set of definitions once at startup."""

    def load(self) -> Sequence[Definition]:
        """Return every definition this source provides."""


class DirectoryDefinitionSource:
    """Read ``*.json`` definitions, recursively, from a directory.

    Each file holds a single StructureDefinition, ValueSet or CodeSystem, or a
    ``Bundle`` of them such as the published ``profiles-types.json`` packs.
    Bundle entries of any other resource type are skipped.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def load(self) -> list[Definition]:
        if not self.root.is_dir():
            raise DefinitionLoadError(
                f"Definitions directory '{self.root}' does not exist", source=str(self.root)
            )
        definitions: list[Definition] = []
        for path in sorted(self.root.rglob("*.json")):
            definitions.extend(self._load_file(path))
        logger.info("definitions.loaded", root=str(self.root), count=len(definitions))
        return definitions

    def _load_file(self, path: Path) -> Iterator[Definition]:
        try:
            content = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise DefinitionLoadError(f"Failed to read {path.name}: {exc}", source=str(path)) from exc
        if not isinstance(content, Mapping):
            raise DefinitionLoadError(f"Invalid JSON data in file {path.name}", source=str(path))
        if content.get("resourceType") == "Bundle":
            yield from _iter_bundle(content, source=str(path))
        else:
            yield parse_definition(content, source=str(path))


class InMemoryDefinitionSource:
    """Definitions handed over as raw JSON mappings."""

    def __init__(self, resources: Sequence[Mapping[str, Any]]) -> None:
        self._resources = list(resources)

    def load(self) -> list[Definition]:
        definitions: list[Definition] = []
        for resource in self._resources:
            if resource.get("resourceType") == "Bundle":
                definitions.extend(_iter_bundle(resource))
            else:
                definitions.append(parse_definition(resource))
        return definitions


def _iter_bundle(bundle: Mapping[str, Any], *, source: str | None = None) -> Iterator[Definition]:
    for index, entry in enumerate(bundle.get("entry") or ()):
        resource = entry.get("resource") if isinstance(entry, Mapping) else None
        if not isinstance(resource, Mapping):
            continue
        resource_type = resource.get("resourceType")
        if resource_type not in DEFINITION_RESOURCE_TYPES:
            logger.debug(
                "definitions.bundle.entry_skipped",
                source=source,
                index=index,
                resource_type=resource_type,
            )
            continue
        yield parse_definition(resource, source=source)


def load_registry(source: DefinitionSource | Path | str) -> DefinitionRegistry:
    """Populate a registry from ``source`` and freeze it."""
    if isinstance(source, (str, Path)):
        source = DirectoryDefinitionSource(source)
    return DefinitionRegistry(source.load()).freeze()


__all__ = [
    "DefinitionSource",
    "DirectoryDefinitionSource",
    "InMemoryDefinitionSource",
    "load_registry",
]
