"""SQLAlchemy async data access adapter.

Executes each dispatched batch as ``SELECT ... WHERE key IN (...)`` against a
request-scoped ``AsyncSession``, chunked to ``DATALOADER_ADAPTER_CHUNK_SIZE``
keys per statement. Many-to-many relations join through their association
table in a single query:

    SELECT posts.*, post_tags.tag_id FROM posts
    JOIN post_tags ON posts.id = post_tags.post_id
    WHERE post_tags.tag_id IN (...)

``registry_from_models`` derives entity kinds and relation descriptors from
the ORM mappers, so a declarative model set is all the configuration a host
needs.

The adapter cannot tell "parent has no children" from "parent does not
exist" without an extra query per batch; relation fetches therefore only
report parent values that have at least one child.
"""

from __future__ import annotations

import asyncio
import logging
from itertools import batched
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, inspect as sa_inspect, or_, select, true, tuple_
from sqlalchemy.orm.attributes import set_committed_value

from graph_loader.adapters.memory import matches
from graph_loader.core.exceptions import ConfigurationError
from graph_loader.core.settings import get_dataloader_settings
from graph_loader.dataloader.fingerprint import normalize_key
from graph_loader.dataloader.registry import EntityKind, EntityRegistry, ToMany, ToOne

if TYPE_CHECKING:
    from collections.abc import Hashable, Iterable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import Mapper
    from sqlalchemy.sql.elements import ColumnElement

    from graph_loader.dataloader.registry import RelationDescriptor

    Predicate = tuple[tuple[str, Any], ...]

logger = logging.getLogger(__name__)


def _attribute_keys(mapper: Mapper[Any], columns: Iterable[Any]) -> tuple[str, ...]:
    return tuple(mapper.get_property_by_column(column).key for column in columns)


def registry_from_models(*models: type[Any]) -> EntityRegistry:
    """Build an EntityRegistry from declarative ORM classes.

    Kind names are class names. Relationships pointing at classes outside
    ``models`` are skipped.

    Example:
        registry = registry_from_models(User, Post, Tag)
        registry.relation("User", "posts")  # ToMany(User.posts -> Post)
    """
    mappers: dict[str, Mapper[Any]] = {model.__name__: sa_inspect(model) for model in models}
    registry = EntityRegistry(
        EntityKind(
            name,
            _attribute_keys(mapper, mapper.primary_key),
            fields=frozenset(prop.key for prop in mapper.column_attrs),
        )
        for name, mapper in mappers.items()
    )

    for name, mapper in mappers.items():
        for rel in mapper.relationships:
            target = rel.mapper.class_.__name__
            if target not in mappers:
                logger.debug(
                    "Skipping relationship to unregistered model",
                    extra={"relation": f"{name}.{rel.key}", "target": target},
                )
                continue
            variant = ToMany if rel.uselist else ToOne
            if rel.secondary is not None:
                registry.register_relation(
                    variant(
                        rel.key,
                        owner=name,
                        target=target,
                        local=_attribute_keys(mapper, [pair[0] for pair in rel.synchronize_pairs]),
                        remote=_attribute_keys(
                            rel.mapper, [pair[0] for pair in rel.secondary_synchronize_pairs]
                        ),
                        through=rel.secondary.key,
                        through_local=tuple(pair[1].name for pair in rel.synchronize_pairs),
                        through_remote=tuple(
                            pair[1].name for pair in rel.secondary_synchronize_pairs
                        ),
                    )
                )
            else:
                registry.register_relation(
                    variant(
                        rel.key,
                        owner=name,
                        target=target,
                        local=_attribute_keys(mapper, [pair[0] for pair in rel.local_remote_pairs]),
                        remote=_attribute_keys(
                            rel.mapper, [pair[1] for pair in rel.local_remote_pairs]
                        ),
                    )
                )
    return registry


class SQLAlchemyAdapter:
    """Data access adapter over an ``AsyncSession``.

    Statements are serialized with a lock because an ``AsyncSession`` does
    not allow concurrent operations, while the scheduler may dispatch
    several batches in the same tick.

    Args:
        session: AsyncSession scoped to the current request
        models: Declarative classes, one per entity kind (kind = class name)
        chunk_size: Keys per statement; defaults to the configured value
    """

    def __init__(
        self,
        session: AsyncSession,
        models: Iterable[type[Any]],
        *,
        chunk_size: int | None = None,
    ) -> None:
        self._session = session
        self._models: dict[str, type[Any]] = {model.__name__: model for model in models}
        self.chunk_size = chunk_size or get_dataloader_settings().adapter_chunk_size
        self._lock = asyncio.Lock()
        self.statements = 0

    def _model(self, kind: str) -> type[Any]:
        try:
            return self._models[kind]
        except KeyError:
            raise ConfigurationError(
                "No model registered for entity kind",
                details={"kind": kind, "known": sorted(self._models)},
            ) from None

    @staticmethod
    def _in(columns: Sequence[Any], keys: Sequence[Hashable]) -> ColumnElement[bool]:
        if len(columns) == 1:
            return columns[0].in_(keys)
        return tuple_(*columns).in_(keys)

    @staticmethod
    def _compare(column: Any, value: Any) -> ColumnElement[bool]:
        if value is None:
            return column.is_(None)
        if isinstance(value, tuple):
            return column.in_(value)
        return column == value

    async def _execute(self, stmt: Any) -> Any:
        async with self._lock:
            self.statements += 1
            return await self._session.execute(stmt)

    def _key(self, entity: Any, names: tuple[str, ...]) -> Hashable:
        return normalize_key(tuple(getattr(entity, name) for name in names))

    async def fetch_by_keys(
        self,
        kind: EntityKind,
        keys: Sequence[Hashable],
    ) -> dict[Hashable, Any]:
        model = self._model(kind.name)
        columns = [getattr(model, name) for name in kind.primary_key]
        found: dict[Hashable, Any] = {}
        for chunk in batched(keys, self.chunk_size):
            result = await self._execute(select(model).where(self._in(columns, chunk)))
            for entity in result.scalars().all():
                found[self._key(entity, kind.primary_key)] = entity
        return found

    async def fetch_by_foreign_key(
        self,
        relation: RelationDescriptor,
        parent_keys: Sequence[Hashable],
    ) -> dict[Hashable, list[Any]]:
        model = self._model(relation.target)
        order = list(sa_inspect(model).primary_key)
        grouped: dict[Hashable, list[Any]] = {}

        if relation.through is None:
            remote = [getattr(model, name) for name in relation.remote]
            for chunk in batched(parent_keys, self.chunk_size):
                stmt = select(model).where(self._in(remote, chunk)).order_by(*order)
                result = await self._execute(stmt)
                for entity in result.scalars().all():
                    grouped.setdefault(self._key(entity, relation.remote), []).append(entity)
            return grouped

        table = model.metadata.tables[relation.through]
        through_local = [table.c[name] for name in relation.through_local]
        join_on = and_(
            *(
                table.c[column] == getattr(model, name)
                for column, name in zip(relation.through_remote, relation.remote, strict=True)
            )
        )
        for chunk in batched(parent_keys, self.chunk_size):
            stmt = (
                select(model, *through_local)
                .join(table, join_on)
                .where(self._in(through_local, chunk))
                .order_by(*order)
            )
            result = await self._execute(stmt)
            for row in result.all():
                grouped.setdefault(normalize_key(tuple(row[1:])), []).append(row[0])
        return grouped

    async def fetch_by_predicate(
        self,
        kind: EntityKind,
        predicates: Sequence[Predicate],
    ) -> dict[Predicate, list[Any]]:
        model = self._model(kind.name)
        clauses = [
            and_(*(self._compare(getattr(model, name), value) for name, value in predicate))
            if predicate
            else true()
            for predicate in predicates
        ]
        order = [getattr(model, name) for name in kind.primary_key]
        result = await self._execute(select(model).where(or_(*clauses)).order_by(*order))
        rows = result.scalars().all()
        return {
            predicate: [
                row
                for row in rows
                if all(matches(getattr(row, name), value) for name, value in predicate)
            ]
            for predicate in predicates
        }

    def get_value(self, entity: Any, attribute: str) -> Any:
        return getattr(entity, attribute)

    def attach(self, entity: Any, attribute: str, value: Any) -> None:
        # No history, no lazy load of the previous value
        set_committed_value(entity, attribute, value)


__all__ = ["SQLAlchemyAdapter", "registry_from_models"]
