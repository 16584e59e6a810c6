"""Strawberry GraphQL integration."""

from __future__ import annotations

from graph_loader.graphql.context import LoaderContext, create_loader_context
from graph_loader.graphql.selection import selection_from_info

__all__ = ["LoaderContext", "create_loader_context", "selection_from_info"]
