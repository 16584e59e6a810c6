"""Naming strategies: external (query) field names -> internal (storage) names.

A strategy is any pure ``str -> str`` callable. Two built-ins match the ways
stores are usually laid out behind a camelCase GraphQL schema:

- ``CAMELCASE``: storage uses camelCase too, names pass through unchanged
- ``SNAKECASE``: storage uses snake_case, ``firstName`` becomes ``first_name``
"""

from __future__ import annotations

import re
from collections.abc import Callable
from enum import StrEnum

from graph_loader.core.exceptions import ConfigurationError

NamingStrategy = Callable[[str], str]

_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def camel_to_snake(name: str) -> str:
    """Convert a camelCase / PascalCase name to snake_case.

    Example:
        >>> camel_to_snake("ownerId")
        'owner_id'
        >>> camel_to_snake("HTTPStatusCode")
        'http_status_code'
    """
    return _BOUNDARY_RE.sub("_", name).lower()


class LoaderNamingStrategy(StrEnum):
    """Built-in naming strategies selectable from configuration."""

    CAMELCASE = "camelcase"
    SNAKECASE = "snakecase"

    def __call__(self, name: str) -> str:
        if self is LoaderNamingStrategy.SNAKECASE:
            return camel_to_snake(name)
        return name


def resolve_naming_strategy(strategy: str | NamingStrategy | None) -> NamingStrategy:
    """Turn a configured strategy name or callable into a callable.

    Raises:
        ConfigurationError: If the name is not a known built-in strategy.
    """
    if strategy is None:
        return LoaderNamingStrategy.CAMELCASE
    if isinstance(strategy, str):
        try:
            return LoaderNamingStrategy(strategy.lower())
        except ValueError as exc:
            raise ConfigurationError(
                "Unknown naming strategy",
                details={"strategy": strategy},
            ) from exc
    if not callable(strategy):
        raise ConfigurationError(
            "Naming strategy must be callable",
            details={"type": type(strategy).__name__},
        )
    return strategy


__all__ = [
    "LoaderNamingStrategy",
    "NamingStrategy",
    "camel_to_snake",
    "resolve_naming_strategy",
]
