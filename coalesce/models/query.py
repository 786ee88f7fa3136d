"""Normalized query and policy outcomes."""

import hashlib
import json
from dataclasses import dataclass, field

from coalesce.models.feedback import Feedback


@dataclass(frozen=True)
class NormalizedQuery:
    """Trimmed query plus everything that affects the backend result."""

    text: str
    workflow: str
    params: dict[str, str] = field(default_factory=dict)

    @property
    def key(self) -> str:
        canonical = json.dumps(
            {"workflow": self.workflow, "query": self.text, "params": self.params},
            sort_keys=True,
            ensure_ascii=False,
            separators=(",", ":"),
        )
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def __hash__(self) -> int:
        return hash(self.key)


@dataclass(frozen=True)
class Continue:
    query: NormalizedQuery


@dataclass(frozen=True)
class Terminal:
    feedback: Feedback
