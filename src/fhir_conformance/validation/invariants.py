"""Run-scoped collection of invariant jobs for the external evaluator."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from fhir_conformance.models.definitions import Constraint, StructureDefinition
from fhir_conformance.models.invariants import InvariantJob

logger = structlog.get_logger(__name__)

# Universal base-model invariants ("all elements have a value or children" and
# the two narrative checks); every resource carries them.
DEFAULT_SKIPPED_CONSTRAINT_KEYS: frozenset[str] = frozenset({"ele-1", "txt-1", "txt-2"})


class InvariantCollector:
    """Ordered job queue de-duplicated on ``(key, path)``.

    One collector belongs to exactly one validation run and is drained once.
    """

    def __init__(self, *, skipped_keys: Iterable[str] = DEFAULT_SKIPPED_CONSTRAINT_KEYS) -> None:
        self._skipped_keys = frozenset(skipped_keys)
        self._jobs: list[InvariantJob] = []
        self._seen: set[tuple[str, str]] = set()
        self._drained = False

    def enqueue(self, job: InvariantJob) -> bool:
        """Append ``job`` unless an equal ``(key, path)`` is queued; return whether it was added."""
        if self._drained:
            raise RuntimeError("InvariantCollector has already been drained")
        if job.identity in self._seen:
            return False
        self._seen.add(job.identity)
        self._jobs.append(job)
        return True

    def collect(
        self,
        definition: StructureDefinition,
        *,
        root_data: Mapping[str, Any],
        data: Mapping[str, Any],
        path: str,
    ) -> int:
        """Queue the root-element constraints of ``definition`` for the node at ``path``.

        Returns:
            Number of jobs added. Zero is a normal outcome.
        """
        added = 0
        for constraint in self.applicable_constraints(definition):
            job = InvariantJob(
                root_data=root_data,
                data=data,
                expression=constraint.expression or "",
                key=constraint.key,
                human=constraint.human,
                severity=constraint.severity,
                source=constraint.source,
                path=path,
            )
            if self.enqueue(job):
                added += 1
        if added:
            logger.debug("invariants.collected", definition=definition.id, path=path, added=added)
        return added

    def applicable_constraints(self, definition: StructureDefinition) -> list[Constraint]:
        root = definition.root_element
        if root is None:
            return []
        return [
            constraint
            for constraint in root.constraint
            if constraint.key not in self._skipped_keys and constraint.expression
        ]

    def drain(self) -> list[InvariantJob]:
        """Hand over the queued jobs; the collector accepts nothing afterwards."""
        self._drained = True
        jobs, self._jobs = self._jobs, []
        return jobs

    def __len__(self) -> int:
        return len(self._jobs)


__all__ = ["DEFAULT_SKIPPED_CONSTRAINT_KEYS", "InvariantCollector"]
