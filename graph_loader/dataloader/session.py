"""Loader session: the host-facing coordinator.

One session owns one entity cache and one batch table. It is conventionally
created per top-level request, but several concurrent query executions may
share it: they then share the cache and the in-flight batches by reference,
so identical loads from unrelated executions coalesce into one fetch. The
session's lifetime is the caller's responsibility; nothing is held at module
level.

Usage:
    session = create_loader_session(adapter, registry, naming_strategy="snakecase")
    user = await session.load("User", 1)
    posts_per_user = await session.load_many("User", "posts", [1, 2, 3])
    owners = await session.resolve_relation(posts, "Post.owner")
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import TYPE_CHECKING, Any

from graph_loader.core.exceptions import ConfigurationError
from graph_loader.core.settings import get_dataloader_settings
from graph_loader.dataloader.cache import NOT_FOUND, EntityCache
from graph_loader.dataloader.fingerprint import (
    EntityKey,
    PredicateKey,
    RelationKey,
    normalize_key,
)
from graph_loader.dataloader.naming import resolve_naming_strategy
from graph_loader.dataloader.planner import RelationPlanner
from graph_loader.dataloader.query import EntityQuery
from graph_loader.dataloader.registry import RelationDescriptor
from graph_loader.dataloader.scheduler import BatchScheduler

if TYPE_CHECKING:
    from collections.abc import Hashable, Iterable, Mapping, Sequence

    from graph_loader.core.settings import DataLoaderSettings
    from graph_loader.dataloader.adapter import DataAccessAdapter
    from graph_loader.dataloader.fingerprint import BatchKey, Fingerprint
    from graph_loader.dataloader.naming import NamingStrategy
    from graph_loader.dataloader.registry import EntityRegistry
    from graph_loader.dataloader.scheduler import SchedulerStats

logger = logging.getLogger(__name__)


class LoaderSession:
    """Batching, deduplicating, caching front door to a data access adapter.

    Args:
        adapter: Executes the bulk fetches
        registry: Entity kinds and relation descriptors
        naming: External -> internal field name mapping
        auto_dispatch: Dispatch batches at the end of each tick
        log_batches: Log every dispatched batch at DEBUG level
        session_id: Identifier attached to log records
    """

    def __init__(
        self,
        adapter: DataAccessAdapter,
        registry: EntityRegistry,
        naming: NamingStrategy,
        *,
        auto_dispatch: bool = True,
        log_batches: bool = True,
        session_id: str | None = None,
    ) -> None:
        self.adapter = adapter
        self.registry = registry
        self.naming = naming
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.cache = EntityCache()
        self.scheduler = BatchScheduler(
            self._dispatch,
            self.cache,
            auto_dispatch=auto_dispatch,
            log_batches=log_batches,
            name=self.session_id,
        )
        self.planner = RelationPlanner(self.scheduler, registry, adapter, naming)

    def __repr__(self) -> str:
        return f"LoaderSession(id={self.session_id!r}, cached={len(self.cache)})"

    @property
    def stats(self) -> SchedulerStats:
        return self.scheduler.stats

    # --- point loads -----------------------------------------------------

    async def load(self, kind: str, key: Any, *, default: Any = None) -> Any:
        """Load one entity by primary key, batched with concurrent loads.

        Returns:
            The entity, or ``default`` if it does not exist.
        """
        self.registry.entity(kind)
        value = await self.scheduler.schedule(EntityKey.of(kind, key))
        return default if value is NOT_FOUND else value

    async def load_all(self, kind: str, keys: Iterable[Any]) -> list[Any]:
        """Load many entities by primary key; ``None`` for missing ones, in key order."""
        self.registry.entity(kind)
        fingerprints = [EntityKey.of(kind, key) for key in keys]
        values = await self._gather(fingerprints)
        return [None if value is NOT_FOUND else value for value in values]

    # --- relation loads --------------------------------------------------

    async def load_many(
        self,
        kind: str,
        relation: str,
        parent_keys: Iterable[Any],
        *,
        default: Any = None,
    ) -> list[Any]:
        """Load a relation's targets for many parent values at once.

        Args:
            kind: Owning kind
            relation: Relation name as seen externally (naming strategy applies)
            parent_keys: Parent correlation values (the relation's ``local`` side)
            default: Returned for parents the adapter did not report at all.
                ``None`` means "same as no targets": ``[]`` for to-many and
                ``None`` for to-one relations.

        Returns:
            One outcome per parent key, in order.
        """
        descriptor = self._relation(kind, relation)
        point = not descriptor.many and self.registry.targets_primary_key(descriptor)
        if point:
            fingerprints: list[Fingerprint] = [
                EntityKey.of(descriptor.target, key) for key in parent_keys
            ]
        else:
            fingerprints = [
                RelationKey.of(descriptor.owner, descriptor.name, key) for key in parent_keys
            ]
        values = await self._gather(fingerprints)

        results: list[Any] = []
        for value in values:
            if value is NOT_FOUND and default is not None:
                results.append(default)
            else:
                results.append(self.planner.shape(descriptor, point, value))
        return results

    async def resolve_relation(
        self,
        parents: Iterable[Any],
        relation: RelationDescriptor | str,
        *,
        kind: str | None = None,
    ) -> dict[Hashable, Any]:
        """Resolve a relation for already loaded parents.

        ``relation`` is a descriptor, a qualified ``"Kind.relation"`` name, or
        an external relation name together with ``kind``.
        """
        if not isinstance(relation, RelationDescriptor):
            if kind is None:
                kind, _, relation = relation.rpartition(".")
            if not kind:
                raise ConfigurationError(
                    "Relation name needs an owning kind",
                    details={"relation": relation},
                )
            relation = self._relation(kind, relation)
        return await self.planner.resolve_relation(parents, relation)

    # --- predicate loads -------------------------------------------------

    async def find(self, kind: str, filters: Mapping[str, Any] | None = None, **kwargs: Any) -> list[Any]:
        """Load every entity of ``kind`` matching an equality filter.

        Filter names are external names; the naming strategy maps them.
        Identical filters issued in the same tick share one fetch.
        """
        self.registry.entity(kind)
        fingerprint = PredicateKey.of(kind, self._internal_filters(kind, {**(filters or {}), **kwargs}))
        value = await self.scheduler.schedule(fingerprint)
        return [] if value is NOT_FOUND else list(value)

    async def find_one(self, kind: str, filters: Mapping[str, Any] | None = None, **kwargs: Any) -> Any:
        """Like ``find`` but return the first match or ``None``.

        A filter on exactly the primary key with scalar values becomes a
        point load, so it dedups with ``load()`` calls for the same entity.
        A list value keeps its IN meaning and goes through ``find``'s path.
        """
        entity_kind = self.registry.entity(kind)
        internal = self._internal_filters(kind, {**(filters or {}), **kwargs})
        if set(internal) == set(entity_kind.primary_key) and all(
            value is not None and not isinstance(value, list | tuple) for value in internal.values()
        ):
            key = tuple(internal[name] for name in entity_kind.primary_key)
            value = await self.scheduler.schedule(EntityKey.of(kind, key))
            return None if value is NOT_FOUND else value
        fingerprint = PredicateKey.of(kind, internal)
        value = await self.scheduler.schedule(fingerprint)
        return value[0] if value is not NOT_FOUND and value else None

    def query(self, kind: str) -> EntityQuery:
        """Start a chainable query for ``kind``."""
        self.registry.entity(kind)
        return EntityQuery(self, kind)

    # --- cache control ---------------------------------------------------

    def prime(self, kind: str, key: Any, value: Any) -> bool:
        """Seed the cache with a known entity. Existing entries win."""
        self.registry.entity(kind)
        return self.cache.prime(EntityKey.of(kind, key), value)

    def invalidate(self, kind: str, key: Any) -> bool:
        """Forget one cached entity so the next load fetches it again."""
        self.registry.entity(kind)
        return self.cache.invalidate(EntityKey.of(kind, key))

    def clear(self, kind: str | None = None) -> int:
        """Forget cached entries for ``kind`` (or everything)."""
        if kind is not None:
            self.registry.entity(kind)
        return self.cache.clear(kind)

    # --- tick control ----------------------------------------------------

    def flush(self) -> None:
        """Close and dispatch every open batch now."""
        self.scheduler.flush()

    async def drain(self) -> None:
        """Flush until nothing is open or in flight."""
        await self.scheduler.drain()

    # --- internals -------------------------------------------------------

    def _relation(self, kind: str, name: str) -> RelationDescriptor:
        self.registry.entity(kind)
        relation = self.registry.relation_for_field(kind, name, self.naming)
        if relation is None:
            return self.registry.relation(kind, self.naming(name))
        return relation

    def _internal_filters(self, kind: str, filters: Mapping[str, Any]) -> dict[str, Any]:
        entity_kind = self.registry.entity(kind)
        internal = {self.naming(name): value for name, value in filters.items()}
        if entity_kind.fields:
            unknown = set(internal) - entity_kind.fields
            if unknown:
                raise ConfigurationError(
                    "Unknown filter fields",
                    details={"kind": kind, "fields": sorted(unknown)},
                )
        return internal

    async def _gather(self, fingerprints: Sequence[Fingerprint]) -> list[Any]:
        futures = [self.scheduler.schedule(fp) for fp in fingerprints]
        if not futures:
            return []
        outcomes = await asyncio.gather(*futures, return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        return outcomes

    async def _dispatch(
        self,
        batch_key: BatchKey,
        fingerprints: list[Fingerprint],
    ) -> dict[Fingerprint, Any]:
        """Route one closed batch to the matching adapter call."""
        shape = batch_key[0]
        if shape == "entity":
            kind = self.registry.entity(batch_key[1])
            by_key = {fp.key: fp for fp in fingerprints}
            rows = await self.adapter.fetch_by_keys(kind, list(by_key))
            return {
                by_key[normalize_key(key)]: value
                for key, value in rows.items()
                if normalize_key(key) in by_key
            }
        if shape == "relation":
            relation = self.registry.relation(batch_key[1], batch_key[2])
            by_parent = {fp.parent_key: fp for fp in fingerprints}
            groups = await self.adapter.fetch_by_foreign_key(relation, list(by_parent))
            return {
                by_parent[normalize_key(key)]: value
                for key, value in groups.items()
                if normalize_key(key) in by_parent
            }
        if shape == "predicate":
            kind = self.registry.entity(batch_key[1])
            by_predicate = {fp.predicate: fp for fp in fingerprints}
            groups = await self.adapter.fetch_by_predicate(kind, list(by_predicate))
            return {
                by_predicate[predicate]: value
                for predicate, value in groups.items()
                if predicate in by_predicate
            }
        raise ConfigurationError("Unknown batch shape", details={"batch_key": batch_key})


def create_loader_session(
    adapter: DataAccessAdapter,
    registry: EntityRegistry,
    *,
    naming_strategy: str | NamingStrategy | None = None,
    settings: DataLoaderSettings | None = None,
    auto_dispatch: bool | None = None,
    session_id: str | None = None,
) -> LoaderSession:
    """Factory for a loader session.

    Args:
        adapter: Data access adapter handle
        registry: Entity/relation metadata
        naming_strategy: Strategy name (``"camelcase"``/``"snakecase"``) or
            callable. Defaults to the configured ``DATALOADER_NAMING_STRATEGY``.
        settings: Explicit settings; defaults to ``get_dataloader_settings()``
        auto_dispatch: Override ``DATALOADER_AUTO_DISPATCH``
        session_id: Identifier for log correlation

    Returns:
        A new session with an empty cache.
    """
    settings = settings or get_dataloader_settings()
    naming = resolve_naming_strategy(
        naming_strategy if naming_strategy is not None else settings.naming_strategy
    )
    session = LoaderSession(
        adapter,
        registry,
        naming,
        auto_dispatch=settings.auto_dispatch if auto_dispatch is None else auto_dispatch,
        log_batches=settings.log_batches,
        session_id=session_id,
    )
    logger.debug(
        "Loader session created",
        extra={"session_id": session.session_id, "kinds": registry.kinds},
    )
    return session


__all__ = ["LoaderSession", "create_loader_session"]
