"""Persisted coordination state - one JSON file per record."""

from typing import Any, Literal

from pydantic import BaseModel


class CacheEntry(BaseModel):
    """Published backend outcome for one key."""

    key: str
    status: Literal["ok", "err"] = "ok"
    payload: Any
    created_at: float
    ttl_seconds: int

    def age(self, now: float) -> float:
        return max(now - self.created_at, 0.0)

    def is_expired(self, now: float) -> bool:
        return self.age(now) > self.ttl_seconds


class CoalesceLock(BaseModel):
    """A worker is computing this key."""

    key: str
    owner_id: str
    started_at: float
    staleness_ceiling: float

    def is_stale(self, now: float) -> bool:
        return now - self.started_at > self.staleness_ceiling


class LatestRequest(BaseModel):
    """Most recent key the live launcher session asked for."""

    key: str
    query: str
    seq: str
    updated_at: float
