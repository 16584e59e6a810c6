"""Data loader configuration settings.

Controls the default naming strategy, batching window behaviour and adapter
chunking. Environment variables use DATALOADER_ prefix.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

NamingStrategyName = Literal["camelcase", "snakecase"]


class DataLoaderSettings(BaseSettings):
    """Data loader configuration.

    Environment variables use DATALOADER_ prefix.
    Example: DATALOADER_NAMING_STRATEGY=snakecase, DATALOADER_ADAPTER_CHUNK_SIZE=500
    """

    naming_strategy: NamingStrategyName = Field(
        default="camelcase",
        description=(
            "How external field names map to storage names: camelcase keeps them as-is, "
            "snakecase converts camelCase to snake_case"
        ),
    )

    auto_dispatch: bool = Field(
        default=True,
        description="Dispatch open batches automatically at the end of each event loop tick",
    )

    adapter_chunk_size: int = Field(
        default=500,
        ge=1,
        le=10_000,
        description="Maximum number of keys per statement issued by the SQLAlchemy adapter",
    )

    log_batches: bool = Field(
        default=True,
        description="Log every dispatched batch at DEBUG level",
    )

    model_config = SettingsConfigDict(
        env_prefix="DATALOADER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
