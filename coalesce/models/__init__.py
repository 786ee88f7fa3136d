"""Domain models."""

from coalesce.models.feedback import Feedback, Item, pending, placeholder
from coalesce.models.query import Continue, NormalizedQuery, Terminal
from coalesce.models.state import CacheEntry, CoalesceLock, LatestRequest

__all__ = [
    # Feedback
    "Feedback",
    "Item",
    "pending",
    "placeholder",
    # Query
    "NormalizedQuery",
    "Continue",
    "Terminal",
    # State
    "CacheEntry",
    "CoalesceLock",
    "LatestRequest",
]
