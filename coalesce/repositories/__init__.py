"""Filesystem-resident coordination state."""

from coalesce.repositories.base import BaseStore, StateDir, sanitize_component
from coalesce.repositories.cache import CacheStore
from coalesce.repositories.lock import LockAttempt, LockStore, new_owner_id
from coalesce.repositories.request import RequestStore

__all__ = [
    "BaseStore",
    "StateDir",
    "sanitize_component",
    "CacheStore",
    "LockStore",
    "LockAttempt",
    "new_owner_id",
    "RequestStore",
]
