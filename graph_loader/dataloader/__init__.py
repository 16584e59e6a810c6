"""Request-scoped batching, deduplicating, caching data loader.

Loads issued during one event loop tick collapse into one bulk fetch per
entity kind (or relation), identical loads share one slot, and every result
is cached for the lifetime of the session. Relations of loaded entities are
resolved the same way, recursively, which removes the N+1 query pattern of
field-by-field GraphQL resolution.
"""

from __future__ import annotations

from graph_loader.dataloader.adapter import DataAccessAdapter
from graph_loader.dataloader.cache import NOT_FOUND, CacheEntry, EntityCache
from graph_loader.dataloader.fingerprint import (
    EntityKey,
    Fingerprint,
    PredicateKey,
    RelationKey,
)
from graph_loader.dataloader.naming import LoaderNamingStrategy, camel_to_snake
from graph_loader.dataloader.planner import RelationPlanner
from graph_loader.dataloader.query import EntityQuery
from graph_loader.dataloader.registry import (
    EntityKind,
    EntityRegistry,
    RelationDescriptor,
    ToMany,
    ToOne,
)
from graph_loader.dataloader.scheduler import Batch, BatchScheduler, BatchState
from graph_loader.dataloader.selection import Selection
from graph_loader.dataloader.session import LoaderSession, create_loader_session

__all__ = [
    "NOT_FOUND",
    "Batch",
    "BatchScheduler",
    "BatchState",
    "CacheEntry",
    "DataAccessAdapter",
    "EntityCache",
    "EntityKey",
    "EntityKind",
    "EntityQuery",
    "EntityRegistry",
    "Fingerprint",
    "LoaderNamingStrategy",
    "LoaderSession",
    "PredicateKey",
    "RelationDescriptor",
    "RelationKey",
    "RelationPlanner",
    "Selection",
    "ToMany",
    "ToOne",
    "camel_to_snake",
    "create_loader_session",
]
