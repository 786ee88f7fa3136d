"""Coalesce lock store - exclusive-create ownership markers with staleness."""

import os
import time
import uuid
from dataclasses import dataclass
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from coalesce.errors import StorageError
from coalesce.models.state import CoalesceLock
from coalesce.repositories.base import BaseStore, Clock, StateDir
from settings import STALE_AFTER


@dataclass(frozen=True)
class LockAttempt:
    """Result of `try_acquire`. `lock` is ours when acquired, else the holder's."""

    acquired: bool
    lock: CoalesceLock | None
    reclaimed: bool = False


def new_owner_id() -> str:
    return f"{os.getpid()}-{uuid.uuid4().hex[:12]}"


class LockStore(BaseStore):
    """At most one non-stale lock file per key."""

    def __init__(self, state: StateDir, stale_after: float = STALE_AFTER, clock: Clock = time.time):
        super().__init__(state, clock)
        self.stale_after = stale_after

    def path_for(self, key: str) -> Path:
        return self.state.lock_dir / f"{key}.lock"

    def read(self, key: str) -> CoalesceLock | None:
        """Current holder, or None when unlocked.

        An empty or half-written file belongs to an owner that crashed (or is
        still writing); its mtime stands in for `started_at`.
        """
        path = self.path_for(key)
        raw = self.state.read_text(path)
        if raw is None:
            return None
        try:
            return CoalesceLock.model_validate_json(raw)
        except ValidationError:
            try:
                started_at = path.stat().st_mtime
            except FileNotFoundError:
                return None
            return CoalesceLock(key=key, owner_id="", started_at=started_at, staleness_ceiling=self.stale_after)

    def _create(self, key: str, owner_id: str) -> CoalesceLock | None:
        """Exclusive create. None when the file already exists."""
        lock = CoalesceLock(
            key=key,
            owner_id=owner_id,
            started_at=self.now(),
            staleness_ceiling=self.stale_after,
        )
        try:
            fd = os.open(self.path_for(key), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return None
        except OSError as e:
            raise StorageError(f"Cannot create lock: {e}") from e
        try:
            os.write(fd, lock.model_dump_json().encode("utf-8"))
        except OSError as e:
            os.close(fd)
            self.path_for(key).unlink(missing_ok=True)
            raise StorageError(f"Cannot write lock: {e}") from e
        os.close(fd)
        return lock

    def try_acquire(self, key: str, owner_id: str) -> LockAttempt:
        """Acquire, reclaiming a stale holder once if needed."""
        self.state.ensure()

        lock = self._create(key, owner_id)
        if lock is not None:
            logger.debug("Lock acquired: key={}, owner={}", key[:12], owner_id)
            return LockAttempt(acquired=True, lock=lock)

        holder = self.read(key)
        if holder is None:
            # Released between our create and read.
            lock = self._create(key, owner_id)
            return LockAttempt(acquired=lock is not None, lock=lock or self.read(key))

        if not holder.is_stale(self.now()):
            return LockAttempt(acquired=False, lock=holder)

        if not self.reclaim(key, holder):
            return LockAttempt(acquired=False, lock=self.read(key))

        lock = self._create(key, owner_id)
        if lock is None:
            return LockAttempt(acquired=False, lock=self.read(key))
        logger.info("Stale lock reclaimed: key={}, previous owner={}", key[:12], holder.owner_id or "?")
        return LockAttempt(acquired=True, lock=lock, reclaimed=True)

    def reclaim(self, key: str, observed: CoalesceLock) -> bool:
        """Move a stale lock aside. Exactly one concurrent reclaimer wins the rename."""
        path = self.path_for(key)
        tombstone = path.with_name(f"{path.name}.stale.{uuid.uuid4().hex}")
        try:
            os.rename(path, tombstone)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Cannot reclaim lock: {e}") from e

        moved = self.state.read_text(tombstone)
        try:
            current = CoalesceLock.model_validate_json(moved or "")
        except ValidationError:
            current = observed

        if current.owner_id != observed.owner_id and not current.is_stale(self.now()):
            # Someone replaced the stale lock before our rename; put theirs back.
            try:
                os.link(tombstone, path)
            except OSError:
                logger.warning("Could not restore live lock: key={}", key[:12])
            tombstone.unlink(missing_ok=True)
            return False

        tombstone.unlink(missing_ok=True)
        return True

    def release(self, key: str, owner_id: str) -> bool:
        """Remove the lock if we still own it."""
        holder = self.read(key)
        if holder is None:
            return False
        if holder.owner_id != owner_id:
            logger.debug("Lock owned by {}, not releasing for {}", holder.owner_id, owner_id)
            return False
        try:
            self.path_for(key).unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Cannot release lock: {e}") from e
        logger.debug("Lock released: key={}, owner={}", key[:12], owner_id)
        return True

    def clear(self) -> int:
        removed = 0
        if not self.state.lock_dir.is_dir():
            return removed
        for path in self.state.lock_dir.iterdir():
            path.unlink(missing_ok=True)
            removed += 1
        return removed
