"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the
process.

Testing:
    In tests, clear the cache to force reload:
    get_dataloader_settings.cache_clear()

    Or construct settings directly:
    settings = DataLoaderSettings(naming_strategy="snakecase")
"""

from __future__ import annotations

from functools import lru_cache

from .dataloader import DataLoaderSettings
from .logs import LoggingSettings


@lru_cache(maxsize=1)
def get_dataloader_settings() -> DataLoaderSettings:
    """Get cached data loader settings.

    Returns:
        Validated and frozen DataLoaderSettings instance.
    """
    return DataLoaderSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()
