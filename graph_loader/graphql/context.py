"""GraphQL context carrying a loader session.

Create one context (and so one session) per request for proper batching
boundaries and cache isolation, or pass the same context to several
executions to let them share batches and cache on purpose.

Example usage in resolver:
    @strawberry.field
    async def user(self, info: Info[LoaderContext, None], id: strawberry.ID) -> UserType | None:
        user = await info.context.loader.load("User", int(id))
        return UserType.from_model(user) if user else None
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from graph_loader.dataloader.session import create_loader_session
from graph_loader.infra.logging import set_log_context

if TYPE_CHECKING:
    from graph_loader.dataloader.adapter import DataAccessAdapter
    from graph_loader.dataloader.registry import EntityRegistry
    from graph_loader.dataloader.session import LoaderSession


@dataclass
class LoaderContext:
    """Request context for GraphQL operations.

    Fields:
    - loader: Loader session (request-scoped unless shared deliberately)
    - correlation_id: For log correlation
    """

    loader: LoaderSession
    correlation_id: str | None = None


def create_loader_context(
    adapter: DataAccessAdapter,
    registry: EntityRegistry,
    *,
    correlation_id: str | None = None,
    **session_kwargs: Any,
) -> LoaderContext:
    """Factory for a request context with a fresh loader session.

    Args:
        adapter: Data access adapter bound to the request's database session
        registry: Entity/relation metadata
        correlation_id: Request correlation id, reused as the session id
        **session_kwargs: Passed to ``create_loader_session``

    Returns:
        LoaderContext with an empty cache
    """
    session = create_loader_session(
        adapter,
        registry,
        session_id=correlation_id,
        **session_kwargs,
    )
    set_log_context(session_id=session.session_id)
    return LoaderContext(loader=session, correlation_id=correlation_id)


__all__ = ["LoaderContext", "create_loader_context"]
