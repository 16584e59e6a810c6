"""Data access adapter boundary.

The core never talks to a store directly. It calls an adapter once per
dispatched batch with the full, deduplicated key set. Adapters may chunk
large key sets internally; the core does not.

Result conventions shared by every fetch method:

- a key missing from the returned mapping means "not found" (never an error)
- an exception instance as a value is a per-key error, cached like a value
- raising fails the whole batch (delivered as ``AdapterFailure``)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Hashable, Mapping, Sequence

    from graph_loader.dataloader.registry import EntityKind, RelationDescriptor

    Predicate = tuple[tuple[str, Any], ...]


@runtime_checkable
class DataAccessAdapter(Protocol):
    """Contract the loader core uses to execute bulk fetches."""

    async def fetch_by_keys(
        self,
        kind: EntityKind,
        keys: Sequence[Hashable],
    ) -> Mapping[Hashable, Any]:
        """Fetch entities by primary key.

        Returns:
            Mapping primary key -> entity. Composite keys are tuples ordered
            like ``kind.primary_key``.
        """
        ...

    async def fetch_by_foreign_key(
        self,
        relation: RelationDescriptor,
        parent_keys: Sequence[Hashable],
    ) -> Mapping[Hashable, list[Any]]:
        """Fetch the targets of ``relation`` for many parent values at once.

        Equivalent to "fetch every target whose correlated columns are in the
        parent value set, then group by that value".

        Returns:
            Mapping parent value -> list of targets. A parent value mapped to
            ``[]`` is known to have no targets; a missing parent value means
            the adapter cannot vouch for the parent at all.
        """
        ...

    async def fetch_by_predicate(
        self,
        kind: EntityKind,
        predicates: Sequence[Predicate],
    ) -> Mapping[Predicate, list[Any]]:
        """Fetch every entity matching each equality predicate.

        A tuple value matches any of its members (``IN``); ``None`` matches
        null.

        Returns:
            Mapping predicate -> list of matching entities.
        """
        ...

    def get_value(self, entity: Any, attribute: str) -> Any:
        """Read one attribute from an entity without touching the store."""
        ...

    def attach(self, entity: Any, attribute: str, value: Any) -> None:
        """Attach a resolved relation to an entity without touching the store."""
        ...


__all__ = ["DataAccessAdapter"]
