"""Entity and relation metadata.

The registry is read-only configuration supplied at session construction.
Relations form a closed set of two variants, ``ToOne`` and ``ToMany``, each
carrying explicit correlation metadata. Everything is validated when it is
registered, never reflectively at request time.

Correlation model:

- ``local``: attribute names on the owning entity
- ``remote``: attribute names on the target entity
- ``through`` (many-to-many only): join table whose ``through_local``
  columns hold ``local`` values and whose ``through_remote`` columns hold
  ``remote`` values

Example:
    registry = EntityRegistry(
        kinds=[EntityKind("User", "id"), EntityKind("Post", "id")],
        relations=[
            ToMany("posts", owner="User", target="Post", local="id", remote="ownerId"),
            ToOne("owner", owner="Post", target="User", local="ownerId", remote="id"),
        ],
    )
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Literal

from graph_loader.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from graph_loader.dataloader.naming import NamingStrategy

logger = logging.getLogger(__name__)


def _as_names(value: str | Iterable[str]) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    return tuple(value)


@dataclass(frozen=True)
class EntityKind:
    """A loadable type.

    Attributes:
        name: Kind name, e.g. ``"User"``
        primary_key: Ordered primary key attribute names
        fields: Known attribute names. Empty means "not checked".
    """

    name: str
    primary_key: tuple[str, ...]
    fields: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        object.__setattr__(self, "primary_key", _as_names(self.primary_key))
        object.__setattr__(self, "fields", frozenset(self.fields))
        if not self.name:
            raise ConfigurationError("Entity kind needs a name")
        if not self.primary_key:
            raise ConfigurationError(
                "Entity kind needs a primary key",
                details={"kind": self.name},
            )
        if self.fields and not set(self.primary_key) <= self.fields:
            raise ConfigurationError(
                "Primary key attributes must be declared fields",
                details={"kind": self.name, "primary_key": self.primary_key},
            )

    @property
    def composite(self) -> bool:
        return len(self.primary_key) > 1


@dataclass(frozen=True)
class RelationDescriptor:
    """Static description of how to fetch related entities."""

    cardinality: ClassVar[Literal["one", "many"]]

    name: str
    owner: str
    target: str
    local: tuple[str, ...]
    remote: tuple[str, ...]
    through: str | None = None
    through_local: tuple[str, ...] = ()
    through_remote: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        for attr in ("local", "remote", "through_local", "through_remote"):
            object.__setattr__(self, attr, _as_names(getattr(self, attr)))

    @property
    def many(self) -> bool:
        return self.cardinality == "many"

    @property
    def qualified_name(self) -> str:
        return f"{self.owner}.{self.name}"


@dataclass(frozen=True)
class ToOne(RelationDescriptor):
    """Relation resolving to at most one target entity."""

    cardinality: ClassVar[Literal["one", "many"]] = "one"


@dataclass(frozen=True)
class ToMany(RelationDescriptor):
    """Relation resolving to a (possibly empty) list of target entities.

    Covers one-to-many (``remote`` is a foreign key on the target) and
    many-to-many (``through`` names the join table).
    """

    cardinality: ClassVar[Literal["one", "many"]] = "many"


class EntityRegistry:
    """Validated catalogue of entity kinds and their relations."""

    def __init__(
        self,
        kinds: Iterable[EntityKind] = (),
        relations: Iterable[RelationDescriptor] = (),
    ) -> None:
        self._kinds: dict[str, EntityKind] = {}
        self._relations: dict[str, dict[str, RelationDescriptor]] = {}
        for kind in kinds:
            self.register_entity(kind)
        for relation in relations:
            self.register_relation(relation)

    def __contains__(self, kind: object) -> bool:
        return kind in self._kinds

    def __repr__(self) -> str:
        return f"EntityRegistry(kinds={sorted(self._kinds)!r})"

    @property
    def kinds(self) -> list[str]:
        return list(self._kinds)

    def register_entity(self, kind: EntityKind) -> EntityKind:
        if kind.name in self._kinds:
            raise ConfigurationError(
                "Entity kind registered twice",
                details={"kind": kind.name},
            )
        self._kinds[kind.name] = kind
        self._relations[kind.name] = {}
        return kind

    def register_relation(self, relation: RelationDescriptor) -> RelationDescriptor:
        self._validate(relation)
        self._relations[relation.owner][relation.name] = relation
        logger.debug(
            "Relation registered",
            extra={"relation": relation.qualified_name, "cardinality": relation.cardinality},
        )
        return relation

    def entity(self, name: str) -> EntityKind:
        """Look up a kind by name.

        Raises:
            ConfigurationError: If the kind is unknown.
        """
        try:
            return self._kinds[name]
        except KeyError:
            raise ConfigurationError(
                "Unknown entity kind",
                details={"kind": name, "known": sorted(self._kinds)},
            ) from None

    def relation(self, kind: str, name: str) -> RelationDescriptor:
        """Look up a relation of ``kind`` by its internal name.

        Raises:
            ConfigurationError: If the kind or relation is unknown.
        """
        self.entity(kind)
        try:
            return self._relations[kind][name]
        except KeyError:
            raise ConfigurationError(
                "Unknown relation",
                details={"kind": kind, "relation": name, "known": sorted(self._relations[kind])},
            ) from None

    def relations_of(self, kind: str) -> Mapping[str, RelationDescriptor]:
        self.entity(kind)
        return dict(self._relations[kind])

    def relation_for_field(
        self,
        kind: str,
        field_name: str,
        naming: NamingStrategy,
    ) -> RelationDescriptor | None:
        """Find the relation an externally named field refers to, if any."""
        relations = self._relations.get(kind, {})
        internal = naming(field_name)
        return relations.get(internal) or relations.get(field_name)

    def targets_primary_key(self, relation: RelationDescriptor) -> bool:
        """True when a relation's ``remote`` side is exactly the target's primary key."""
        return (
            relation.through is None
            and relation.remote == self._kinds[relation.target].primary_key
        )

    def _validate(self, relation: RelationDescriptor) -> None:
        details = {"relation": relation.qualified_name}
        if not isinstance(relation, ToOne | ToMany):
            raise ConfigurationError("Relation must be ToOne or ToMany", details=details)
        owner = self.entity(relation.owner)
        target = self.entity(relation.target)
        if relation.name in self._relations[owner.name]:
            raise ConfigurationError("Relation registered twice", details=details)
        if not relation.local or len(relation.local) != len(relation.remote):
            raise ConfigurationError(
                "Relation needs matching local and remote attributes",
                details={**details, "local": relation.local, "remote": relation.remote},
            )
        if relation.through is not None:
            if not relation.many:
                raise ConfigurationError(
                    "Only to-many relations may use a join table",
                    details=details,
                )
            if len(relation.through_local) != len(relation.local) or len(
                relation.through_remote
            ) != len(relation.remote):
                raise ConfigurationError(
                    "Join table columns must match local and remote attributes",
                    details={**details, "through": relation.through},
                )
        elif relation.through_local or relation.through_remote:
            raise ConfigurationError("Join table columns given without a join table", details=details)
        for kind, names in ((owner, relation.local), (target, relation.remote)):
            unknown = set(names) - kind.fields if kind.fields else set()
            if unknown:
                raise ConfigurationError(
                    "Relation references unknown attributes",
                    details={**details, "kind": kind.name, "attributes": sorted(unknown)},
                )


__all__ = ["EntityKind", "EntityRegistry", "RelationDescriptor", "ToMany", "ToOne"]
