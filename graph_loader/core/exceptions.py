"""Loader exceptions.

Only genuine failures are exceptions here. An entity that does not exist is
a valid outcome (``None`` or an empty list), never an error.
"""

from __future__ import annotations

from typing import Any


class LoaderError(Exception):
    """Base exception for data loader operations.

    Attributes:
        message: Human-readable error description.
        details: Additional context about the error.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize loader error.

        Args:
            message: Error description
            details: Additional context about the error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Format error message with details."""
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigurationError(LoaderError):
    """Programmer error in loader configuration or usage.

    Raised synchronously for unknown entity kinds, unknown relations,
    invalid relation descriptors and malformed keys. Never deferred into a
    batch.

    Example:
        raise ConfigurationError(
            "Unknown entity kind",
            details={"kind": "Usr"},
        )
    """


class AdapterFailure(LoaderError):
    """A bulk fetch failed as a whole.

    Delivered identically to every member of the failing batch. The original
    exception is chained as ``__cause__``. Batch failures are never cached,
    so a later load of the same key in a new batch may succeed.

    Attributes:
        batch_key: Grouping key of the batch that failed
        size: Number of distinct keys in the batch
    """

    def __init__(
        self,
        message: str,
        batch_key: tuple[Any, ...] | None = None,
        size: int = 0,
    ) -> None:
        """Initialize adapter failure.

        Args:
            message: Error description
            batch_key: Grouping key of the failing batch
            size: Number of distinct keys in the batch
        """
        details: dict[str, Any] = {}
        if batch_key is not None:
            details["batch"] = ":".join(str(part) for part in batch_key)
            details["size"] = size
        super().__init__(message, details)
        self.batch_key = batch_key
        self.size = size


__all__ = ["AdapterFailure", "ConfigurationError", "LoaderError"]
