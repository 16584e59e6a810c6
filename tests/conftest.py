"""Pytest configuration and shared fixtures.

Organization:
    - Settings Fixtures: isolated, uncached settings per test
    - In-memory Fixtures: registry, rows, adapter and session over plain dicts
    - Database Fixtures: in-memory SQLite engine/session seeded with tests.fixtures.models
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy import event, insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from graph_loader.adapters import InMemoryAdapter
from graph_loader.core.settings import (
    DataLoaderSettings,
    get_dataloader_settings,
    get_logging_settings,
)
from graph_loader.dataloader import (
    EntityKind,
    EntityRegistry,
    ToMany,
    ToOne,
    create_loader_session,
)
from tests.fixtures.models import POST_TAGS, Base, post_tags, seed_rows

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from graph_loader.dataloader import LoaderSession

# Tests never read a developer's .env or environment overrides
for _name in list(os.environ):
    if _name.startswith(("DATALOADER_", "LOG_")):
        del os.environ[_name]


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Clear LRU-cached settings before and after every test."""
    get_dataloader_settings.cache_clear()
    get_logging_settings.cache_clear()
    yield
    get_dataloader_settings.cache_clear()
    get_logging_settings.cache_clear()


@pytest.fixture
def loader_settings() -> DataLoaderSettings:
    """Default settings, independent of the environment."""
    return DataLoaderSettings(_env_file=None)


# ============================================================================
# In-memory Fixtures
# ============================================================================


@pytest.fixture
def registry() -> EntityRegistry:
    """User/Post/Tag registry with camelCase storage names.

    Relations:
        User.posts  one-to-many  (Post.ownerId -> User.id)
        Post.owner  many-to-one  (Post.ownerId -> User.id)
        Post.tags   many-to-many (through post_tags)
    """
    return EntityRegistry(
        kinds=[
            EntityKind("User", "id", fields={"id", "email", "firstName", "lastName", "age"}),
            EntityKind("Post", "id", fields={"id", "title", "content", "ownerId"}),
            EntityKind("Tag", "id", fields={"id", "name"}),
        ],
        relations=[
            ToMany("posts", owner="User", target="Post", local="id", remote="ownerId"),
            ToOne("owner", owner="Post", target="User", local="ownerId", remote="id"),
            ToMany(
                "tags",
                owner="Post",
                target="Tag",
                local="id",
                remote="id",
                through="post_tags",
                through_local="postId",
                through_remote="tagId",
            ),
        ],
    )


@pytest.fixture
def rows() -> dict[str, list[dict[str, Any]]]:
    """Fresh rows per test; user 3 has no posts."""
    return {
        "User": [
            {"id": 1, "email": "ada@example.com", "firstName": "Ada", "lastName": "Lovelace", "age": 36},
            {"id": 2, "email": "alan@example.com", "firstName": "Alan", "lastName": "Turing", "age": 41},
            {"id": 3, "email": "grace@example.com", "firstName": "Grace", "lastName": "Hopper", "age": 85},
        ],
        "Post": [
            {"id": 1, "title": "Notes", "content": "On the analytical engine", "ownerId": 1},
            {"id": 2, "title": "Bernoulli", "content": "Computing Bernoulli numbers", "ownerId": 1},
            {"id": 3, "title": "Computable numbers", "content": "On computable numbers", "ownerId": 2},
            {"id": 4, "title": "Imitation game", "content": "Computing machinery", "ownerId": 2},
        ],
        "Tag": [
            {"id": 1, "name": "math"},
            {"id": 2, "name": "computing"},
            {"id": 3, "name": "history"},
        ],
    }


@pytest.fixture
def adapter(registry: EntityRegistry, rows: dict[str, list[dict[str, Any]]]) -> InMemoryAdapter:
    return InMemoryAdapter(
        registry,
        rows,
        tables={
            "post_tags": [
                {"postId": link["post_id"], "tagId": link["tag_id"]} for link in POST_TAGS
            ],
        },
    )


@pytest.fixture
def session(
    adapter: InMemoryAdapter,
    registry: EntityRegistry,
    loader_settings: DataLoaderSettings,
) -> LoaderSession:
    """Auto-dispatching session over the in-memory adapter."""
    return create_loader_session(adapter, registry, settings=loader_settings)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Async SQLAlchemy engine on in-memory SQLite, seeded with tests.fixtures.models."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as seed_session:
        seed_session.add_all(seed_rows())
        await seed_session.flush()
        await seed_session.execute(insert(post_tags), POST_TAGS)
        await seed_session.commit()

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def query_log(db_engine: AsyncEngine) -> list[str]:
    """SELECT statements executed on the engine from this point on."""
    statements: list[str] = []

    def _record(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith("SELECT"):
            statements.append(statement)

    event.listen(db_engine.sync_engine, "before_cursor_execute", _record)
    yield statements
    event.remove(db_engine.sync_engine, "before_cursor_execute", _record)


@pytest.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Fresh session (empty identity map) on the seeded database."""
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
