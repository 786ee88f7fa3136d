"""Scratch namespace handle and base store class."""

import os
import re
import time
import uuid
from collections.abc import Callable
from pathlib import Path

from loguru import logger

from coalesce.errors import StorageError
from settings import NAMESPACE_DIR

Clock = Callable[[], float]

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_component(raw: str) -> str:
    """Make a workflow name safe as a single path component."""
    cleaned = _UNSAFE.sub("_", raw or "").strip("_")
    return cleaned or "workflow"


class StateDir:
    """Per-workflow scratch namespace. Passed explicitly to every store."""

    def __init__(self, base: Path, workflow: str):
        self.base = Path(base)
        self.workflow = sanitize_component(workflow)
        self.root = Path(base) / NAMESPACE_DIR / self.workflow

    def __repr__(self) -> str:
        return f"StateDir({str(self.root)!r})"

    @property
    def cache_dir(self) -> Path:
        return self.root / "cache"

    @property
    def lock_dir(self) -> Path:
        return self.root / "locks"

    @property
    def request_path(self) -> Path:
        return self.root / "request.latest.json"

    @property
    def log_dir(self) -> Path:
        return self.root / "logs"

    def ensure(self) -> None:
        """Create the namespace directories."""
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            self.lock_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create {self.root}: {e}") from e

    def atomic_write(self, path: Path, text: str) -> None:
        """Write to a uniquely named sibling, then rename into place."""
        tmp = path.with_name(f".{path.name}.tmp.{os.getpid()}.{uuid.uuid4().hex}")
        try:
            tmp.write_text(text, encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise StorageError(f"Cannot write {path.name}: {e}") from e

    @staticmethod
    def read_text(path: Path) -> str | None:
        """Read a state file; None when absent or unreadable."""
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Cannot read {}: {}", path.name, e)
            return None


class BaseStore:
    """Base store with the namespace handle and an injectable clock."""

    def __init__(self, state: StateDir, clock: Clock = time.time):
        self._state = state
        self._clock = clock
        logger.debug("{} initialized at {}", self.__class__.__name__, state.root)

    @property
    def state(self) -> StateDir:
        return self._state

    def now(self) -> float:
        return self._clock()
