"""GraphQL test fixtures.

Provides:
- SQLAlchemy adapter and registry over the seeded in-memory database
- Loader context (one per test, shared by every execution in that test)
- Query snippets mirroring the chainable query examples
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from graph_loader.adapters.sqlalchemy_adapter import SQLAlchemyAdapter, registry_from_models
from graph_loader.graphql import create_loader_context
from graph_loader.infra.logging import clear_log_context
from tests.fixtures.models import MODELS

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from graph_loader.dataloader import EntityRegistry
    from graph_loader.graphql import LoaderContext


CHAINABLE_USER_QUERY = """
    query ($id: ID!) {
        chainableUser(id: $id) {
            id
            firstName
            posts {
                id
                title
            }
        }
    }
"""

CHAINABLE_USERS_QUERY = """
    query {
        chainableUsers {
            id
            email
            posts {
                title
                owner {
                    email
                }
            }
        }
    }
"""

CHAINABLE_POSTS_QUERY = """
    query {
        chainablePosts {
            id
            title
            owner {
                id
                lastName
            }
        }
    }
"""


@pytest.fixture(autouse=True)
def _clean_log_context():
    yield
    clear_log_context()


@pytest.fixture
def gql_registry() -> EntityRegistry:
    return registry_from_models(*MODELS)


@pytest.fixture
def graphql_context(db_session: AsyncSession, gql_registry: EntityRegistry, loader_settings) -> LoaderContext:
    """Context with a fresh loader session; snake_case storage behind a camelCase schema."""
    return create_loader_context(
        SQLAlchemyAdapter(db_session, MODELS),
        gql_registry,
        correlation_id="test-request",
        naming_strategy="snakecase",
        settings=loader_settings,
    )
