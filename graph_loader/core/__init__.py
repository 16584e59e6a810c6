"""Core configuration and error types."""

from __future__ import annotations

from graph_loader.core.exceptions import AdapterFailure, ConfigurationError, LoaderError

__all__ = ["AdapterFailure", "ConfigurationError", "LoaderError"]
