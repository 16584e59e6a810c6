"""Relation resolution planner.

Turns "these parents, that relation" into batched scheduler loads and maps
the results back onto each parent. ``materialize`` walks a selection tree and
does this level by level, resolving sibling relations concurrently so their
loads share a tick.

Fingerprint choice per relation shape:

- to-one whose remote side is the target primary key: ``EntityKey`` point
  loads, shared with any other point load of the same entity
- any other relation: ``RelationKey(owner, relation, parent value)``, since
  the result is a collection keyed by the parent, not by the child
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from graph_loader.dataloader.cache import NOT_FOUND
from graph_loader.dataloader.fingerprint import EntityKey, RelationKey, normalize_key

if TYPE_CHECKING:
    from collections.abc import Hashable, Iterable

    from graph_loader.dataloader.adapter import DataAccessAdapter
    from graph_loader.dataloader.fingerprint import Fingerprint
    from graph_loader.dataloader.naming import NamingStrategy
    from graph_loader.dataloader.registry import EntityKind, EntityRegistry, RelationDescriptor
    from graph_loader.dataloader.scheduler import BatchScheduler
    from graph_loader.dataloader.selection import Selection

logger = logging.getLogger(__name__)


class RelationPlanner:
    """Plans batched loads for relations of already loaded entities."""

    def __init__(
        self,
        scheduler: BatchScheduler,
        registry: EntityRegistry,
        adapter: DataAccessAdapter,
        naming: NamingStrategy,
    ) -> None:
        self.scheduler = scheduler
        self.registry = registry
        self.adapter = adapter
        self.naming = naming

    def read_key(self, entity: Any, names: tuple[str, ...]) -> Hashable | None:
        """Read a (possibly composite) key from an entity; None if any part is null."""
        values = tuple(self.adapter.get_value(entity, name) for name in names)
        if any(value is None for value in values):
            return None
        return normalize_key(values)

    def primary_key(self, kind: EntityKind, entity: Any) -> Hashable | None:
        return self.read_key(entity, kind.primary_key)

    async def resolve_relation(
        self,
        parents: Iterable[Any],
        relation: RelationDescriptor,
    ) -> dict[Hashable, Any]:
        """Load ``relation`` for every parent with one batched load per distinct value.

        Returns:
            Mapping parent primary key -> target entity or ``None`` (to-one),
            or list of targets, possibly empty (to-many).
        """
        owner = self.registry.entity(relation.owner)
        point = not relation.many and self.registry.targets_primary_key(relation)

        correlated: list[tuple[Hashable, Hashable | None]] = []
        for parent in parents:
            if parent is None:
                continue
            parent_key = self.primary_key(owner, parent)
            if parent_key is None:
                continue
            correlated.append((parent_key, self.read_key(parent, relation.local)))
        if not correlated:
            return {}

        fingerprints: dict[Hashable, Fingerprint] = {}
        for _, value in correlated:
            if value is None or value in fingerprints:
                continue
            if point:
                fingerprints[value] = EntityKey(relation.target, value)
            else:
                fingerprints[value] = RelationKey(relation.owner, relation.name, value)

        # Scheduled back to back so every value joins the same open batch
        futures = [self.scheduler.schedule(fp) for fp in fingerprints.values()]
        outcomes = await asyncio.gather(*futures, return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        resolved = dict(zip(fingerprints, outcomes, strict=True))

        logger.debug(
            "Relation resolved",
            extra={
                "relation": relation.qualified_name,
                "parents": len(correlated),
                "distinct": len(fingerprints),
            },
        )
        return {
            parent_key: self.shape(relation, point, resolved.get(value, NOT_FOUND))
            for parent_key, value in correlated
        }

    @staticmethod
    def shape(relation: RelationDescriptor, point: bool, outcome: Any) -> Any:
        if relation.many:
            return list(outcome) if outcome is not NOT_FOUND else []
        if point:
            return None if outcome is NOT_FOUND else outcome
        if outcome is NOT_FOUND or not outcome:
            return None
        return outcome[0]

    async def materialize(
        self,
        entities: list[Any],
        kind: str,
        selection: Selection | None,
    ) -> None:
        """Resolve and attach every selected relation below ``entities``, recursively."""
        if not entities or not selection:
            return
        jobs = []
        for field_name, sub in selection.fields.items():
            relation = self.registry.relation_for_field(kind, field_name, self.naming)
            if relation is not None:
                jobs.append(self._materialize_relation(entities, relation, sub))
        if jobs:
            await asyncio.gather(*jobs)

    async def _materialize_relation(
        self,
        entities: list[Any],
        relation: RelationDescriptor,
        selection: Selection,
    ) -> None:
        owner = self.registry.entity(relation.owner)
        resolved = await self.resolve_relation(entities, relation)

        children: list[Any] = []
        seen: set[int] = set()
        for entity in entities:
            value = resolved.get(self.primary_key(owner, entity))
            if value is None and relation.many:
                value = []
            self.adapter.attach(entity, relation.name, value)
            for child in value if relation.many else [value]:
                if child is not None and id(child) not in seen:
                    seen.add(id(child))
                    children.append(child)

        await self.materialize(children, relation.target, selection)


__all__ = ["RelationPlanner"]
