"""Tests for the chainable query API."""

from __future__ import annotations

import asyncio

import pytest

from graph_loader.core.exceptions import ConfigurationError
from graph_loader.dataloader import EntityQuery, Selection


class TestEntityQuery:
    """Test query building."""

    def test_where_returns_new_query(self, session):
        base = session.query("User")

        filtered = base.where(id=1)

        assert isinstance(filtered, EntityQuery)
        assert base.filters == {}
        assert filtered.filters == {"id": 1}
        assert filtered.where({"age": 36}).filters == {"id": 1, "age": 36}

    def test_select_merges(self, session):
        query = session.query("User").select({"posts": ["title"]}).select({"posts": {"owner": None}})

        posts = query.selection.child("posts")
        assert set(posts.fields) == {"title", "owner"}

    def test_select_does_not_mutate_original(self, session):
        base = session.query("User").select(["id"])

        base.select(["posts"])

        assert list(base.selection.fields) == ["id"]

    def test_unknown_kind(self, session):
        with pytest.raises(ConfigurationError):
            session.query("Usr")


class TestQueryExecution:
    """Test load_one() and load_many()."""

    async def test_load_one_with_relations(self, session, adapter):
        user = await session.query("User").where(id=1).select({"posts": ["title"]}).load_one()

        assert user["firstName"] == "Ada"
        assert [post["title"] for post in user["posts"]] == ["Notes", "Bernoulli"]
        assert adapter.calls_for("fetch_by_keys", "User") == [[1]]

    async def test_load_one_missing(self, session, adapter):
        user = await session.query("User").where(id=42).select(["posts"]).load_one()

        assert user is None
        assert adapter.calls_for("fetch_by_foreign_key", "User.posts") == []

    async def test_load_many_with_relations(self, session, adapter):
        posts = await session.query("Post").where(ownerId=2).select(Selection.build({"owner": None})).load_many()

        assert [post["id"] for post in posts] == [3, 4]
        assert posts[0]["owner"]["lastName"] == "Turing"

    async def test_concurrent_queries_share_batches(self, session, adapter):
        """Two root queries in one tick should share every level's fetch."""
        first, second = await asyncio.gather(
            session.query("User").where(id=1).select(["posts"]).load_one(),
            session.query("User").where(id=2).select(["posts"]).load_one(),
        )

        assert len(first["posts"]) == len(second["posts"]) == 2
        assert adapter.calls_for("fetch_by_keys", "User") == [[1, 2]]
        assert adapter.calls_for("fetch_by_foreign_key", "User.posts") == [[1, 2]]
