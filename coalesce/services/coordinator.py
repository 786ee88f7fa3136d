"""Coalescing coordinator - per-key state machine over the filesystem stores.

Per key: Idle -> Locked(owner) -> Settling -> Resolved -> Idle.

Every invocation first records itself as the latest request, then serves a
fresh cache entry if one exists. On a miss it tries to take the key's lock
with an exclusive create. The owner hands the slow work to a background
worker (which absorbs the settle window) and returns a rerun hint. Anyone
else polls the cache for a sub-second budget and otherwise returns the same
rerun hint. A lock older than its staleness ceiling is reclaimed.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from coalesce.errors import StorageError
from coalesce.models.query import NormalizedQuery
from coalesce.models.state import CacheEntry, LatestRequest
from coalesce.repositories import CacheStore, LockStore, RequestStore, new_owner_id
from coalesce.services.worker import Dispatcher, WorkerJob
from providers import BackendSpec
from settings import POLL_INTERVAL, CoalesceSettings

# Resolution states
CACHED = "cached"
POLLED = "polled"
DISPATCHED = "dispatched"
PENDING = "pending"
SETTLING = "settling"
INLINE = "inline"


@dataclass(frozen=True)
class Resolution:
    """Coordinator decision for one invocation."""

    state: str
    entry: CacheEntry | None = None
    rerun: float | None = None

    @property
    def resolved(self) -> bool:
        return self.entry is not None

    @property
    def needs_fetch(self) -> bool:
        return self.state == INLINE


class Coordinator:
    """Decide: serve cache, own the computation, or defer to the owner."""

    def __init__(
        self,
        cache: CacheStore,
        locks: LockStore,
        requests: RequestStore,
        dispatcher: Dispatcher,
        backend: BackendSpec,
        settings: CoalesceSettings,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.cache = cache
        self.locks = locks
        self.requests = requests
        self.dispatcher = dispatcher
        self.backend = backend
        self.settings = settings
        self._clock = clock
        self._sleep = sleep

    def resolve(self, query: NormalizedQuery) -> Resolution:
        key = query.key
        try:
            latest = self.requests.record(query)
        except StorageError as e:
            logger.warning("Coalescing disabled, computing fresh: {}", e)
            return Resolution(INLINE)

        if not self.cache.enabled:
            return self._settle_without_cache(latest)

        hit = self.cache.get(key)
        if hit is not None:
            return Resolution(CACHED, entry=hit[0])

        owner_id = new_owner_id()
        try:
            attempt = self.locks.try_acquire(key, owner_id)
        except StorageError as e:
            logger.warning("Coalescing disabled, computing fresh: {}", e)
            return Resolution(INLINE)

        if attempt.acquired:
            return self._own(query, owner_id)

        logger.debug("Lock held by {}, polling {!r}", attempt.lock.owner_id if attempt.lock else "?", query.text)
        entry = self._poll(key)
        if entry is not None:
            return Resolution(POLLED, entry=entry)
        return Resolution(PENDING, rerun=self.settings.rerun)

    def _own(self, query: NormalizedQuery, owner_id: str) -> Resolution:
        key = query.key
        # A previous owner may have published before dying with its lock held.
        hit = self.cache.get(key)
        if hit is not None:
            self.locks.release(key, owner_id)
            return Resolution(CACHED, entry=hit[0])

        job = self.job_for(query, owner_id)
        try:
            self.dispatcher.dispatch(job)
        except OSError as e:
            logger.warning("Cannot spawn worker, computing fresh: {}", e)
            self.locks.release(key, owner_id)
            return Resolution(INLINE)
        return Resolution(DISPATCHED, rerun=self.settings.rerun)

    def _poll(self, key: str) -> CacheEntry | None:
        """Wait a sub-second budget for the owner's result."""
        deadline = self._clock() + self.settings.poll_budget
        while True:
            hit = self.cache.get(key)
            if hit is not None:
                return hit[0]
            if self.locks.read(key) is None:
                # Owner gone without a fresh result; one last look.
                hit = self.cache.get(key)
                return hit[0] if hit else None
            remaining = deadline - self._clock()
            if remaining <= 0:
                return None
            self._sleep(min(POLL_INTERVAL, remaining))

    def _settle_without_cache(self, latest: LatestRequest) -> Resolution:
        """TTL 0: no handoff channel, so settle on the request marker and fetch inline."""
        if self.settings.settle <= 0:
            return Resolution(INLINE)
        if self._clock() - latest.updated_at >= self.settings.settle:
            return Resolution(INLINE)
        return Resolution(SETTLING, rerun=self.settings.rerun)

    def job_for(self, query: NormalizedQuery, owner_id: str) -> WorkerJob:
        state = self.cache.state
        return WorkerJob(
            workflow=state.workflow,
            cache_base=str(state.base),
            key=query.key,
            query=query.text,
            owner_id=owner_id,
            backend=self.backend,
            cache_ttl=self.settings.cache_ttl,
            settle=self.settings.settle,
            stale_after=self.settings.stale_after,
            backend_timeout=self.settings.backend_timeout,
        )
