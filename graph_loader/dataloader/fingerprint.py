"""Canonical identity for "a thing to load".

Every load request is reduced to a frozen, hashable fingerprint. Two requests
with equal fingerprints are the same request: they share one batch slot and
one cache entry.

Three shapes exist:

- ``EntityKey``: one entity by primary key (point load)
- ``RelationKey``: the children of one parent through a named relation
- ``PredicateKey``: every entity of a kind matching an equality filter

Each fingerprint knows its ``batch_key``, the group it is fetched with.
"""

from __future__ import annotations

from collections.abc import Hashable, Mapping
from dataclasses import dataclass
from typing import Any

from graph_loader.core.exceptions import ConfigurationError

BatchKey = tuple[str, ...]


def normalize_key(key: Any) -> Hashable:
    """Normalize a primary (or parent) key into its canonical hashable form.

    Scalars are kept as-is. Lists and tuples become tuples, and a
    one-element sequence collapses to its single value so ``1``, ``[1]`` and
    ``(1,)`` dedup to one fingerprint.

    Booleans are rejected: ``True`` hashes equal to ``1`` and would share the
    fingerprint of a real key. Equal numbers of other types (``1`` and
    ``1.0``) are the same key, as they are for the database.

    Raises:
        ConfigurationError: If the key is ``None``, a bool, or cannot be hashed.
    """
    if key is None:
        raise ConfigurationError("Key must not be None")
    if isinstance(key, bool):
        raise ConfigurationError("Key must not be a bool", details={"key": key})
    if isinstance(key, list | tuple):
        parts = tuple(normalize_key(part) for part in key)
        return parts[0] if len(parts) == 1 else parts
    try:
        hash(key)
    except TypeError as exc:
        raise ConfigurationError(
            "Key is not hashable",
            details={"key_type": type(key).__name__},
        ) from exc
    return key


def normalize_predicate(filters: Mapping[str, Any]) -> tuple[tuple[str, Any], ...]:
    """Freeze an equality filter into a sorted tuple of ``(field, value)`` pairs.

    List values are frozen to tuples. ``None`` is a legal value (``IS NULL``).
    """
    frozen: list[tuple[str, Any]] = []
    for name, value in filters.items():
        if isinstance(value, list | tuple):
            value = tuple(value)
        try:
            hash(value)
        except TypeError as exc:
            raise ConfigurationError(
                "Filter value is not hashable",
                details={"field": name, "value_type": type(value).__name__},
            ) from exc
        frozen.append((name, value))
    return tuple(sorted(frozen, key=lambda item: item[0]))


@dataclass(frozen=True, slots=True)
class EntityKey:
    """Point load of one entity by primary key."""

    kind: str
    key: Hashable

    @property
    def batch_key(self) -> BatchKey:
        return ("entity", self.kind)

    @classmethod
    def of(cls, kind: str, key: Any) -> EntityKey:
        return cls(kind, normalize_key(key))


@dataclass(frozen=True, slots=True)
class RelationKey:
    """Collection load: all targets of ``relation`` for one parent value.

    ``kind`` is the owning kind. ``parent_key`` is the parent's correlation
    value (usually its primary key), not the children's keys.
    """

    kind: str
    relation: str
    parent_key: Hashable

    @property
    def batch_key(self) -> BatchKey:
        return ("relation", self.kind, self.relation)

    @classmethod
    def of(cls, kind: str, relation: str, parent_key: Any) -> RelationKey:
        return cls(kind, relation, normalize_key(parent_key))


@dataclass(frozen=True, slots=True)
class PredicateKey:
    """Filtered load: every entity of ``kind`` matching an equality predicate.

    The empty predicate selects every row.
    """

    kind: str
    predicate: tuple[tuple[str, Any], ...]

    @property
    def batch_key(self) -> BatchKey:
        return ("predicate", self.kind)

    @classmethod
    def of(cls, kind: str, filters: Mapping[str, Any]) -> PredicateKey:
        return cls(kind, normalize_predicate(filters))

    def as_dict(self) -> dict[str, Any]:
        return dict(self.predicate)


Fingerprint = EntityKey | RelationKey | PredicateKey

__all__ = [
    "BatchKey",
    "EntityKey",
    "Fingerprint",
    "PredicateKey",
    "RelationKey",
    "normalize_key",
    "normalize_predicate",
]
