"""graph-loader: batching, caching data loader between GraphQL resolvers and a relational store."""

from __future__ import annotations

from graph_loader.core.exceptions import AdapterFailure, ConfigurationError, LoaderError
from graph_loader.dataloader import (
    NOT_FOUND,
    DataAccessAdapter,
    EntityKind,
    EntityRegistry,
    LoaderNamingStrategy,
    LoaderSession,
    Selection,
    ToMany,
    ToOne,
    create_loader_session,
)

__version__ = "0.1.0"

__all__ = [
    "NOT_FOUND",
    "AdapterFailure",
    "ConfigurationError",
    "DataAccessAdapter",
    "EntityKind",
    "EntityRegistry",
    "LoaderError",
    "LoaderNamingStrategy",
    "LoaderSession",
    "Selection",
    "ToMany",
    "ToOne",
    "create_loader_session",
]
