"""Chainable query API.

Builds on a session: roots are fetched through a batched predicate (or point)
load, then every relation in the requested selection is materialized by the
planner, level by level.

Usage in a resolver:
    user = await (
        session.query("User")
        .where(id=user_id)
        .select_info(info)
        .load_one()
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from graph_loader.dataloader.selection import Selection

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from strawberry.types import Info

    from graph_loader.dataloader.session import LoaderSession


class EntityQuery:
    """Immutable, chainable description of a root load plus its selection."""

    def __init__(
        self,
        session: LoaderSession,
        kind: str,
        filters: Mapping[str, Any] | None = None,
        selection: Selection | None = None,
    ) -> None:
        self._session = session
        self.kind = kind
        self.filters: dict[str, Any] = dict(filters or {})
        self.selection = selection or Selection()

    def __repr__(self) -> str:
        return f"EntityQuery(kind={self.kind!r}, filters={self.filters!r})"

    def where(self, filters: Mapping[str, Any] | None = None, /, **kwargs: Any) -> EntityQuery:
        """Add equality filters (external field names)."""
        return EntityQuery(
            self._session,
            self.kind,
            {**self.filters, **(filters or {}), **kwargs},
            self.selection,
        )

    def select(self, spec: Selection | Mapping[str, Any] | Iterable[Any]) -> EntityQuery:
        """Merge a selection (tree, nested mapping or list of names) into the query."""
        merged = Selection().merge(self.selection).merge(Selection.build(spec))
        return EntityQuery(self._session, self.kind, self.filters, merged)

    def select_info(self, info: Info) -> EntityQuery:
        """Merge the sub-selection of the field being resolved by Strawberry."""
        from graph_loader.graphql.selection import selection_from_info

        return self.select(selection_from_info(info))

    async def load_one(self) -> Any:
        """Load the first matching entity with its selected relations, or ``None``."""
        entity = await self._session.find_one(self.kind, self.filters)
        if entity is not None:
            await self._session.planner.materialize([entity], self.kind, self.selection)
        return entity

    async def load_many(self) -> list[Any]:
        """Load every matching entity with its selected relations."""
        entities = await self._session.find(self.kind, self.filters)
        await self._session.planner.materialize(entities, self.kind, self.selection)
        return entities


__all__ = ["EntityQuery"]
