"""In-memory data access adapter.

Serves entities from plain Python rows (dicts or objects), keyed by kind.
Useful as a reference implementation of the adapter contract, for tests,
and for hosts that already hold their data in memory.

Unlike the SQLAlchemy adapter it can tell "parent has no children" apart
from "parent does not exist": relation fetches report ``[]`` for existing
parents and omit unknown ones.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from graph_loader.core.exceptions import ConfigurationError
from graph_loader.dataloader.fingerprint import normalize_key

if TYPE_CHECKING:
    from collections.abc import Hashable, Iterable, Sequence

    from graph_loader.dataloader.registry import EntityKind, EntityRegistry, RelationDescriptor

    Predicate = tuple[tuple[str, Any], ...]


def read_attribute(entity: Any, attribute: str) -> Any:
    if isinstance(entity, Mapping):
        return entity.get(attribute)
    return getattr(entity, attribute, None)


def matches(actual: Any, expected: Any) -> bool:
    """Predicate value semantics: tuples mean IN, anything else equality."""
    if isinstance(expected, tuple):
        return actual in expected
    return actual == expected


class InMemoryAdapter:
    """Adapter over in-memory rows.

    Args:
        registry: Entity and relation metadata
        rows: Mapping kind name -> rows of that kind
        tables: Join tables for many-to-many relations, name -> rows

    Attributes:
        calls: Every fetch issued, as ``(method, name, keys)`` tuples
    """

    def __init__(
        self,
        registry: EntityRegistry,
        rows: Mapping[str, Iterable[Any]] | None = None,
        tables: Mapping[str, Iterable[Mapping[str, Any]]] | None = None,
    ) -> None:
        self.registry = registry
        self._rows: dict[str, list[Any]] = {kind: [] for kind in registry.kinds}
        self._tables: dict[str, list[Mapping[str, Any]]] = {
            name: list(table) for name, table in (tables or {}).items()
        }
        self.calls: list[tuple[str, str, list[Any]]] = []
        for kind, kind_rows in (rows or {}).items():
            self.add(kind, *kind_rows)

    def add(self, kind: str, *rows: Any) -> None:
        self.registry.entity(kind)
        self._rows[kind].extend(rows)

    def calls_for(self, method: str, name: str) -> list[list[Any]]:
        """Key lists of every recorded call to ``method`` for ``name``."""
        return [keys for m, n, keys in self.calls if m == method and n == name]

    def _key(self, entity: Any, names: tuple[str, ...]) -> Hashable | None:
        values = tuple(read_attribute(entity, name) for name in names)
        if any(value is None for value in values):
            return None
        return normalize_key(values)

    def _index(self, kind: str, names: tuple[str, ...]) -> dict[Hashable, list[Any]]:
        index: dict[Hashable, list[Any]] = {}
        for row in self._rows[kind]:
            key = self._key(row, names)
            if key is not None:
                index.setdefault(key, []).append(row)
        return index

    async def fetch_by_keys(
        self,
        kind: EntityKind,
        keys: Sequence[Hashable],
    ) -> dict[Hashable, Any]:
        self.calls.append(("fetch_by_keys", kind.name, list(keys)))
        index = self._index(kind.name, kind.primary_key)
        return {key: index[key][0] for key in keys if key in index}

    async def fetch_by_foreign_key(
        self,
        relation: RelationDescriptor,
        parent_keys: Sequence[Hashable],
    ) -> dict[Hashable, list[Any]]:
        self.calls.append(("fetch_by_foreign_key", relation.qualified_name, list(parent_keys)))
        known_parents = set(self._index(relation.owner, relation.local))

        if relation.through is None:
            grouped = self._index(relation.target, relation.remote)
        else:
            if relation.through not in self._tables:
                raise ConfigurationError(
                    "Unknown join table",
                    details={"relation": relation.qualified_name, "through": relation.through},
                )
            targets = self._index(relation.target, relation.remote)
            grouped = {}
            for link in self._tables[relation.through]:
                parent = self._key(link, relation.through_local)
                target = self._key(link, relation.through_remote)
                grouped.setdefault(parent, []).extend(targets.get(target, []))

        return {
            key: list(grouped.get(key, []))
            for key in parent_keys
            if key in known_parents or key in grouped
        }

    async def fetch_by_predicate(
        self,
        kind: EntityKind,
        predicates: Sequence[Predicate],
    ) -> dict[Predicate, list[Any]]:
        self.calls.append(("fetch_by_predicate", kind.name, list(predicates)))
        rows = self._rows[kind.name]
        return {
            predicate: [
                row
                for row in rows
                if all(matches(read_attribute(row, name), value) for name, value in predicate)
            ]
            for predicate in predicates
        }

    def get_value(self, entity: Any, attribute: str) -> Any:
        return read_attribute(entity, attribute)

    def attach(self, entity: Any, attribute: str, value: Any) -> None:
        if isinstance(entity, dict):
            entity[attribute] = value
        else:
            setattr(entity, attribute, value)


__all__ = ["InMemoryAdapter", "matches", "read_attribute"]
