"""Addressable store of conformance definitions.

Key Responsibilities:
    - Map a canonical key to a parsed StructureDefinition, ValueSet or
      CodeSystem
    - Enforce the write-once lifecycle: definitions are registered during a
      load phase, after which the registry is frozen and read-only

Collaborators:
    - Upstream: ``validation.loader`` populates registries; the structural
      validator and ``FHIRValidator`` resolve from them
    - Downstream: ``models.definitions``

Thread Safety:
    - Lookups on a frozen registry are plain dictionary reads and are safe from
      any number of concurrent validation runs. Registration is not
      synchronised and must finish before the first validation call.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

import structlog

from fhir_conformance.models.definitions import (
    CodeSystem,
    Definition,
    StructureDefinition,
    ValueSet,
)
from fhir_conformance.utils.errors import DefinitionNotFoundError, RegistryFrozenError

logger = structlog.get_logger(__name__)


def canonical_key(definition: Definition) -> str:
    """Return the key a definition is stored under.

    Extension profiles (type ``Extension`` but not the ``Extension`` base type
    itself) and all ValueSets/CodeSystems are keyed by canonical URL; every
    other StructureDefinition is keyed by its id.
    """
    if isinstance(definition, StructureDefinition):
        if definition.type == "Extension" and definition.id != "Extension":
            return definition.url
        return definition.id
    if isinstance(definition, (ValueSet, CodeSystem)):
        return definition.url
    raise TypeError(f"Unsupported definition type: {type(definition).__name__}")


class DefinitionRegistry:
    """Registry of conformance definitions keyed by id or canonical URL."""

    def __init__(self, definitions: Iterable[Definition] | None = None) -> None:
        self._definitions: dict[str, Definition] = {}
        self._frozen = False
        for definition in definitions or ():
            self.register(definition)

    def register(self, definition: Definition) -> str:
        """Store ``definition`` under its canonical key and return the key."""
        key = canonical_key(definition)
        if self._frozen:
            raise RegistryFrozenError(key)
        if key in self._definitions:
            logger.debug("registry.definition.replaced", key=key)
        self._definitions[key] = definition
        return key

    def freeze(self) -> DefinitionRegistry:
        """End the load phase; further registration raises ``RegistryFrozenError``."""
        self._frozen = True
        logger.info("registry.frozen", definitions=len(self._definitions))
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def resolve(self, key: str) -> Definition:
        """Return the definition stored under ``key``.

        Raises:
            DefinitionNotFoundError: When nothing is registered under ``key``.
        """
        try:
            return self._definitions[key]
        except KeyError as exc:
            raise DefinitionNotFoundError(key) from exc

    def get(self, key: str) -> Definition | None:
        return self._definitions.get(key)

    def structure_definition(self, key: str) -> StructureDefinition | None:
        """Return the StructureDefinition under ``key`` or ``None``."""
        definition = self._definitions.get(key)
        return definition if isinstance(definition, StructureDefinition) else None

    def __contains__(self, key: object) -> bool:
        return key in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def __iter__(self) -> Iterator[str]:
        return iter(self._definitions)


__all__ = ["DefinitionRegistry", "canonical_key"]
