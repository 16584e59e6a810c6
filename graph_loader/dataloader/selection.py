"""Requested shape of a query, merged across fragments.

A ``Selection`` is a tree of field names. Reaching the same field twice
(through two fragments, or a fragment plus a direct selection) merges both
sub-selections into one node, so the planner sees each relation once.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Selection:
    """Tree of selected field names."""

    fields: dict[str, Selection] = field(default_factory=dict)

    def __contains__(self, name: object) -> bool:
        return name in self.fields

    def __bool__(self) -> bool:
        return bool(self.fields)

    def child(self, name: str) -> Selection | None:
        return self.fields.get(name)

    def add(self, name: str, sub: Selection | None = None) -> Selection:
        """Add (or merge into) the node for ``name`` and return it."""
        node = self.fields.setdefault(name, Selection())
        if sub is not None:
            node.merge(sub)
        return node

    def merge(self, other: Selection) -> Selection:
        for name, sub in other.fields.items():
            self.add(name, sub)
        return self

    @classmethod
    def build(cls, spec: Selection | Mapping[str, Any] | Iterable[Any] | None) -> Selection:
        """Build a selection from a nested mapping / iterable description.

        Example:
            selection = Selection.build({"id": None, "posts": ["id", "title"]})
            assert "title" in selection.child("posts")
        """
        if spec is None:
            return cls()
        if isinstance(spec, Selection):
            return spec
        selection = cls()
        if isinstance(spec, Mapping):
            for name, sub in spec.items():
                selection.add(name, cls.build(sub))
            return selection
        if isinstance(spec, str):
            selection.add(spec)
            return selection
        for item in spec:
            selection.merge(cls.build(item))
        return selection


__all__ = ["Selection"]
