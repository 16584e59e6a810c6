"""Batch scheduler: coalesce, dedup and fan out load requests.

Every cache-missing ``schedule()`` call joins the OPEN batch for its
fingerprint's ``batch_key``. When the current event loop tick ends (or when
``flush()`` is called explicitly) every open batch closes and is dispatched
as exactly one bulk fetch. Results are written to the session cache first and
only then delivered to every waiter, so a waiter that immediately issues a
follow-up load already sees a warm cache.

Batch lifecycle::

    OPEN --flush/tick--> CLOSED --fetch ok--> SETTLED
                                 \\--fetch raised--> FAILED

The scheduler runs on a single asyncio event loop and is not thread-safe.
Batch-table mutation happens at two points only: membership addition in
``schedule()`` and settlement in ``_dispatch()``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from graph_loader.core.exceptions import AdapterFailure, LoaderError
from graph_loader.dataloader.cache import NOT_FOUND, CacheEntry, EntityCache

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from graph_loader.dataloader.fingerprint import BatchKey, Fingerprint

    BatchDispatcher = Callable[
        [BatchKey, list[Fingerprint]],
        Awaitable[Mapping[Fingerprint, Any]],
    ]

logger = logging.getLogger(__name__)


class BatchState(StrEnum):
    """Lifecycle state of a batch."""

    OPEN = "open"
    CLOSED = "closed"
    SETTLED = "settled"
    FAILED = "failed"


@dataclass(eq=False, slots=True)
class PendingRequest:
    """One caller waiting on one fingerprint.

    Each caller owns its future, so a caller that gets cancelled does not
    cancel the shared batch or the other waiters.
    """

    fingerprint: Fingerprint
    future: asyncio.Future[Any]

    def resolve(self, value: Any) -> bool:
        if self.future.done():
            return False
        self.future.set_result(value)
        return True

    def reject(self, error: BaseException) -> bool:
        if self.future.done():
            return False
        self.future.set_exception(error)
        return True


class Batch:
    """Ordered, deduplicated set of fingerprints fetched together."""

    def __init__(self, key: BatchKey) -> None:
        self.key = key
        self.state = BatchState.OPEN
        self._members: dict[Fingerprint, list[PendingRequest]] = {}

    def __len__(self) -> int:
        return len(self._members)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._members

    def __repr__(self) -> str:
        return f"Batch(key={self.key!r}, state={self.state.value}, size={len(self)})"

    @property
    def fingerprints(self) -> list[Fingerprint]:
        return list(self._members)

    @property
    def waiter_count(self) -> int:
        return sum(len(waiters) for waiters in self._members.values())

    def add(self, request: PendingRequest) -> bool:
        """Add a waiter, creating the membership if needed.

        A duplicate fingerprint attaches another waiter to the existing
        membership instead of adding a second member. New members are only
        accepted while the batch is OPEN; extra waiters are accepted until
        the batch settles.

        Returns:
            True if the fingerprint became a new member.
        """
        waiters = self._members.get(request.fingerprint)
        if waiters is not None:
            if self.state not in (BatchState.OPEN, BatchState.CLOSED):
                raise RuntimeError(f"Cannot attach to {self.state.value} batch")
            waiters.append(request)
            return False
        if self.state is not BatchState.OPEN:
            raise RuntimeError(f"Cannot add members to {self.state.value} batch")
        self._members[request.fingerprint] = [request]
        return True

    def close(self) -> None:
        self.state = BatchState.CLOSED

    def settle(self, outcomes: Mapping[Fingerprint, CacheEntry]) -> int:
        """Deliver each member's outcome to all of its waiters.

        Returns:
            Number of waiters resolved or rejected.
        """
        delivered = 0
        for fingerprint, waiters in self._members.items():
            entry = outcomes[fingerprint]
            for request in waiters:
                if entry.error is not None:
                    delivered += request.reject(entry.error)
                else:
                    delivered += request.resolve(entry.value)
        self.state = BatchState.SETTLED
        return delivered

    def fail(self, error: BaseException) -> int:
        """Reject every waiter of every member with the same error."""
        delivered = 0
        for waiters in self._members.values():
            for request in waiters:
                delivered += request.reject(error)
        self.state = BatchState.FAILED
        return delivered


@dataclass
class SchedulerStats:
    """Counters describing the work a scheduler has done."""

    batches_dispatched: int = 0
    keys_fetched: int = 0
    cache_hits: int = 0
    coalesced: int = 0
    failures: int = 0
    dispatched: list[BatchKey] = field(default_factory=list)

    def dispatch_count(self, batch_key: BatchKey) -> int:
        """Number of bulk fetches issued for one batch key."""
        return sum(1 for key in self.dispatched if key == batch_key)


class BatchScheduler:
    """Coalesces fingerprints into batches and dispatches them per tick.

    Args:
        dispatcher: Coroutine function called once per batch with the batch
            key and its deduplicated fingerprints. Returns a mapping
            fingerprint -> value, where a missing fingerprint means "not found"
            and an exception instance is a per-key error.
        cache: Session cache consulted before scheduling and filled on settle.
        auto_dispatch: Dispatch at the end of each event loop tick. When
            False, batches only dispatch on ``flush()`` / ``drain()``.
        log_batches: Log every dispatch at DEBUG level.
        name: Identifier (usually the session id) attached to log records.

    Example:
        scheduler = BatchScheduler(dispatcher)
        user_a = scheduler.schedule(EntityKey.of("User", 1))
        user_b = scheduler.schedule(EntityKey.of("User", 2))
        await asyncio.gather(user_a, user_b)  # one dispatcher call with both keys
    """

    def __init__(
        self,
        dispatcher: BatchDispatcher,
        cache: EntityCache | None = None,
        *,
        auto_dispatch: bool = True,
        log_batches: bool = True,
        name: str | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self.name = name
        self.cache = cache if cache is not None else EntityCache()
        self.auto_dispatch = auto_dispatch
        self._log_batches = log_batches
        self._open: dict[BatchKey, Batch] = {}
        # Fingerprint -> batch (open or in flight) that will settle it
        self._members: dict[Fingerprint, Batch] = {}
        self._inflight: set[asyncio.Task[None]] = set()
        self._tick: asyncio.Handle | None = None
        self.stats = SchedulerStats()

    @property
    def open_batches(self) -> list[Batch]:
        return list(self._open.values())

    @property
    def has_pending(self) -> bool:
        """True while any batch is open or in flight."""
        return bool(self._open or self._inflight)

    def schedule(self, fingerprint: Fingerprint) -> asyncio.Future[Any]:
        """Request the value for ``fingerprint``.

        Returns:
            A future owned by this caller. Cache hits return an already
            settled future; everything else settles when its batch does.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()

        entry = self.cache.get(fingerprint)
        if entry is not None:
            self.stats.cache_hits += 1
            if entry.error is not None:
                # Reset so repeated raises of the cached error do not grow its traceback
                future.set_exception(entry.error.with_traceback(None))
            else:
                future.set_result(entry.value)
            return future

        request = PendingRequest(fingerprint, future)
        batch = self._members.get(fingerprint)
        if batch is not None:
            batch.add(request)
            self.stats.coalesced += 1
            return future

        batch = self._open.get(fingerprint.batch_key)
        if batch is None:
            batch = Batch(fingerprint.batch_key)
            self._open[fingerprint.batch_key] = batch
        batch.add(request)
        self._members[fingerprint] = batch

        if self.auto_dispatch and self._tick is None:
            self._tick = loop.call_soon(self._on_tick)
        return future

    def flush(self) -> list[asyncio.Task[None]]:
        """Close every open batch and dispatch it now.

        This is the tick boundary. The automatic dispatch hook calls it at
        the end of the tick in which the first member was added.

        Returns:
            The dispatch tasks started by this call.
        """
        if self._tick is not None:
            self._tick.cancel()
            self._tick = None
        if not self._open:
            return []

        loop = asyncio.get_running_loop()
        batches = list(self._open.values())
        self._open.clear()

        tasks: list[asyncio.Task[None]] = []
        for batch in batches:
            batch.close()
            task = loop.create_task(self._dispatch(batch))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            tasks.append(task)
        return tasks

    async def drain(self) -> None:
        """Flush and wait until no batch is open or in flight.

        Waiters woken by a settlement get one loop pass to schedule follow-up
        loads before the next round, so nested relations drain as well.
        """
        while self._open or self._inflight:
            self.flush()
            if self._inflight:
                await asyncio.gather(*self._inflight, return_exceptions=True)
            await asyncio.sleep(0)

    def _on_tick(self) -> None:
        self._tick = None
        self.flush()

    def _release(self, batch: Batch) -> None:
        for fingerprint in batch.fingerprints:
            if self._members.get(fingerprint) is batch:
                del self._members[fingerprint]

    async def _dispatch(self, batch: Batch) -> None:
        fingerprints = batch.fingerprints
        label = ":".join(batch.key)
        self.stats.batches_dispatched += 1
        self.stats.keys_fetched += len(fingerprints)
        self.stats.dispatched.append(batch.key)
        if self._log_batches:
            logger.debug(
                "Dispatching batch",
                extra={
                    "session_id": self.name,
                    "batch": label,
                    "size": len(fingerprints),
                    "waiters": batch.waiter_count,
                },
            )

        try:
            results = await self._dispatcher(batch.key, fingerprints)
            # A malformed result fails the whole batch before anything is cached
            raw = {fingerprint: results.get(fingerprint, NOT_FOUND) for fingerprint in fingerprints}
        except asyncio.CancelledError:
            self._release(batch)
            batch.fail(AdapterFailure("Batch dispatch cancelled", batch.key, len(fingerprints)))
            raise
        except Exception as exc:
            if isinstance(exc, LoaderError):
                failure: LoaderError = exc
            else:
                failure = AdapterFailure(
                    f"Bulk fetch failed: {exc}",
                    batch_key=batch.key,
                    size=len(fingerprints),
                )
                failure.__cause__ = exc
            self.stats.failures += 1
            logger.warning(
                "Batch failed",
                exc_info=exc,
                extra={"session_id": self.name, "batch": label, "size": len(fingerprints)},
            )
            self._release(batch)
            batch.fail(failure)
            return

        outcomes: dict[Fingerprint, CacheEntry] = {}
        for fingerprint, outcome in raw.items():
            if isinstance(outcome, BaseException):
                outcomes[fingerprint] = self.cache.set_error(fingerprint, outcome)
            else:
                outcomes[fingerprint] = self.cache.set_value(fingerprint, outcome)
        self._release(batch)
        delivered = batch.settle(outcomes)
        if self._log_batches:
            logger.debug(
                "Batch settled",
                extra={"session_id": self.name, "batch": label, "delivered": delivered},
            )


__all__ = ["Batch", "BatchScheduler", "BatchState", "PendingRequest", "SchedulerStats"]
