"""Selection trees from Strawberry resolver info.

Fragment spreads and inline fragments are flattened into their parent, and
a field reached more than once is merged into a single node, so the planner
issues one load per relation however the query spells it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from strawberry.types.nodes import FragmentSpread, InlineFragment, SelectedField

from graph_loader.dataloader.selection import Selection

if TYPE_CHECKING:
    from collections.abc import Iterable

    from strawberry.types import Info
    from strawberry.types.nodes import Selection as StrawberrySelection


def _collect(nodes: Iterable[StrawberrySelection], into: Selection) -> Selection:
    for node in nodes:
        if isinstance(node, SelectedField):
            if node.name.startswith("__"):
                continue
            _collect(node.selections, into.add(node.name))
        elif isinstance(node, FragmentSpread | InlineFragment):
            _collect(node.selections, into)
    return into


def selection_from_info(info: Info) -> Selection:
    """Selection below the field currently being resolved.

    Example:
        For ``{ user(id: 1) { ...userFields posts { id } } }`` with
        ``fragment userFields on User { id posts { title } }`` the resolver
        of ``user`` gets ``{id, posts: {id, title}}``.
    """
    selection = Selection()
    for field in info.selected_fields:
        _collect(field.selections, selection)
    return selection


__all__ = ["selection_from_info"]
