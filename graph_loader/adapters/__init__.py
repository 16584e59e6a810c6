"""Data access adapters.

``InMemoryAdapter`` has no third-party requirements. ``SQLAlchemyAdapter``
lives in ``graph_loader.adapters.sqlalchemy_adapter`` and is imported from
there so the core stays importable without a database driver.
"""

from __future__ import annotations

from graph_loader.adapters.memory import InMemoryAdapter

__all__ = ["InMemoryAdapter"]
