"""Cache store - TTL-keyed published results, one file per key."""

import time
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from coalesce.models.state import CacheEntry
from coalesce.repositories.base import BaseStore, Clock, StateDir
from settings import CACHE_TTL


class CacheStore(BaseStore):
    """Store for published backend outcomes."""

    def __init__(self, state: StateDir, ttl_seconds: int = CACHE_TTL, clock: Clock = time.time):
        super().__init__(state, clock)
        self.ttl_seconds = ttl_seconds

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    def path_for(self, key: str) -> Path:
        return self.state.cache_dir / f"{key}.json"

    def get(self, key: str) -> tuple[CacheEntry, float] | None:
        """Return (entry, age) while fresh, else None."""
        if not self.enabled:
            return None

        raw = self.state.read_text(self.path_for(key))
        if not raw or not raw.strip():
            return None

        try:
            entry = CacheEntry.model_validate_json(raw)
        except ValidationError as e:
            logger.debug("Ignoring corrupt cache file {}: {}", key[:12], e.error_count())
            return None
        if entry.key != key:
            return None

        now = self.now()
        age = entry.age(now)
        if entry.is_expired(now) or age > self.ttl_seconds:
            logger.debug("Cache expired: key={}, age={:.1f}s", key[:12], age)
            return None

        logger.debug("Cache hit: key={}, age={:.1f}s", key[:12], age)
        return entry, age

    def put(self, key: str, payload: Any, status: str = "ok") -> CacheEntry:
        """Atomically publish an outcome."""
        entry = CacheEntry(
            key=key,
            status=status,
            payload=payload,
            created_at=self.now(),
            ttl_seconds=self.ttl_seconds,
        )
        self.state.ensure()
        self.state.atomic_write(self.path_for(key), entry.model_dump_json())
        logger.debug("Cache saved: key={}, status={}", key[:12], status)
        return entry

    def clear(self) -> int:
        """Remove every cache file of this workflow."""
        removed = 0
        if not self.state.cache_dir.is_dir():
            return removed
        for path in self.state.cache_dir.iterdir():
            path.unlink(missing_ok=True)
            removed += 1
        logger.info("Cache cleared: {} files", removed)
        return removed

    def purge_expired(self) -> int:
        """Remove entries past their TTL and unreadable leftovers."""
        removed = 0
        if not self.state.cache_dir.is_dir():
            return removed
        now = self.now()
        for path in self.state.cache_dir.glob("*.json"):
            raw = self.state.read_text(path)
            try:
                expired = CacheEntry.model_validate_json(raw or "").is_expired(now)
            except ValidationError:
                expired = True
            if expired:
                path.unlink(missing_ok=True)
                removed += 1
        if removed:
            logger.debug("Purged {} expired cache files", removed)
        return removed
