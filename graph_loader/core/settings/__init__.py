"""Pydantic Settings v2 configuration.

Import settings via cached loaders:
    from graph_loader.core.settings import get_dataloader_settings

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
"""

from __future__ import annotations

from .dataloader import DataLoaderSettings
from .loader import get_dataloader_settings, get_logging_settings
from .logs import LoggingSettings

__all__ = [
    "DataLoaderSettings",
    "LoggingSettings",
    "get_dataloader_settings",
    "get_logging_settings",
]
