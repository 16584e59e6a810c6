"""Session-scoped entity cache.

Maps fingerprint -> settled outcome (value or per-key error). Entries live for
the whole session and are only removed through explicit ``invalidate`` /
``clear`` calls. Whole-batch adapter failures never land here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator

    from graph_loader.dataloader.fingerprint import Fingerprint

logger = logging.getLogger(__name__)


class _NotFound:
    """Sentinel for a key the adapter did not return."""

    _instance: _NotFound | None = None

    def __new__(cls) -> _NotFound:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __bool__(self) -> bool:
        return False


NOT_FOUND: Any = _NotFound()


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """Settled outcome for one fingerprint."""

    value: Any = None
    error: BaseException | None = None

    @property
    def found(self) -> bool:
        """False when the adapter did not return the key at all."""
        return self.error is None and self.value is not NOT_FOUND

    def unwrap(self) -> Any:
        """Return the cached value or raise the cached error."""
        if self.error is not None:
            raise self.error
        return self.value


class EntityCache:
    """In-memory fingerprint -> CacheEntry store for one session.

    Only the batch scheduler writes to it during normal operation. Hosts may
    ``prime`` known values or ``invalidate`` entries explicitly.
    """

    def __init__(self) -> None:
        self._entries: dict[Fingerprint, CacheEntry] = {}

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Fingerprint]:
        return iter(self._entries)

    def get(self, fingerprint: Fingerprint) -> CacheEntry | None:
        return self._entries.get(fingerprint)

    def set_value(self, fingerprint: Fingerprint, value: Any) -> CacheEntry:
        entry = CacheEntry(value=value)
        self._entries[fingerprint] = entry
        return entry

    def set_error(self, fingerprint: Fingerprint, error: BaseException) -> CacheEntry:
        entry = CacheEntry(error=error)
        self._entries[fingerprint] = entry
        return entry

    def prime(self, fingerprint: Fingerprint, value: Any) -> bool:
        """Seed a value without fetching. Existing entries win.

        Returns:
            True if the value was stored, False if an entry already existed.
        """
        if fingerprint in self._entries:
            return False
        self._entries[fingerprint] = CacheEntry(value=value)
        return True

    def invalidate(self, fingerprint: Fingerprint) -> bool:
        """Drop one entry so the next load fetches it again."""
        return self._entries.pop(fingerprint, None) is not None

    def clear(self, kind: str | None = None) -> int:
        """Drop every entry, or only entries whose fingerprint belongs to ``kind``.

        Returns:
            Number of entries removed.
        """
        if kind is None:
            removed = len(self._entries)
            self._entries.clear()
        else:
            stale = [fp for fp in self._entries if fp.kind == kind]
            for fp in stale:
                del self._entries[fp]
            removed = len(stale)
        logger.debug("Cache cleared", extra={"kind": kind, "removed": removed})
        return removed


__all__ = ["NOT_FOUND", "CacheEntry", "EntityCache"]
