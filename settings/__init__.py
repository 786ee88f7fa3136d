"""Application settings."""

import math
import os
import re
from dataclasses import dataclass
from pathlib import Path

# Logging
LOG_LEVEL = os.getenv("SF_COALESCE_LOG_LEVEL", "WARNING")
WORKER_LOG_LEVEL = os.getenv("SF_COALESCE_WORKER_LOG_LEVEL", "INFO")

# Scratch namespace
NAMESPACE_DIR = "script-filter-async-coalesce"
FALLBACK_CACHE_DIR = "nils-script-filter-workflow"
CACHE_DIR_ENV_VARS = (
    "alfred_workflow_cache",
    "ALFRED_WORKFLOW_CACHE",
    "alfred_workflow_data",
    "ALFRED_WORKFLOW_DATA",
)

# Coalescing defaults (seconds)
CACHE_TTL = 10
SETTLE = 2.0
RERUN = 0.4
POLL_BUDGET = 0.3
POLL_INTERVAL = 0.05
STALE_AFTER = 30.0
BACKEND_TIMEOUT = 10.0
MIN_QUERY_CHARS = 2

# (min, max) per knob
TTL_RANGE = (0, 86400)
SETTLE_RANGE = (0.0, 10.0)
RERUN_RANGE = (0.1, 5.0)
POLL_RANGE = (0.0, 0.9)
STALE_RANGE = (1.0, 3600.0)
TIMEOUT_RANGE = (1.0, 120.0)
MIN_CHARS_RANGE = (0, 64)

_NUMBER = re.compile(r"^[0-9]+([.][0-9]+)?$")


def clamp_float(raw: str | float | None, default: float, bounds: tuple[float, float]) -> float:
    """Parse a non-negative number, falling back to default when invalid."""
    if raw is None:
        return default
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        text = "".join(raw.split())
        if not _NUMBER.match(text):
            return default
        value = float(text)
    if math.isnan(value) or value < 0:
        return default
    low, high = bounds
    return min(max(value, low), high)


def clamp_int(raw: str | int | None, default: int, bounds: tuple[int, int]) -> int:
    """Parse a non-negative integer, falling back to default when invalid."""
    if raw is None:
        return default
    if isinstance(raw, int):
        value = raw
    else:
        text = "".join(raw.split())
        if not text.isdigit():
            return default
        value = int(text)
    if value < 0:
        return default
    low, high = bounds
    return min(max(value, low), high)


@dataclass(frozen=True)
class CoalesceSettings:
    """Per-workflow timing policy. Every knob is independent."""

    cache_ttl: int = CACHE_TTL
    settle: float = SETTLE
    rerun: float = RERUN
    poll_budget: float = POLL_BUDGET
    stale_after: float = STALE_AFTER
    backend_timeout: float = BACKEND_TIMEOUT
    min_chars: int = MIN_QUERY_CHARS

    @classmethod
    def from_env(cls, prefix: str, environ: dict[str, str] | None = None) -> "CoalesceSettings":
        """Resolve overrides from `<PREFIX>_...` environment variables."""
        env = os.environ if environ is None else environ
        prefix = prefix.strip().upper().rstrip("_")

        def var(name: str) -> str | None:
            return env.get(f"{prefix}_{name}") if prefix else None

        return cls(
            cache_ttl=clamp_int(var("QUERY_CACHE_TTL_SECONDS"), CACHE_TTL, TTL_RANGE),
            settle=clamp_float(var("QUERY_COALESCE_SETTLE_SECONDS"), SETTLE, SETTLE_RANGE),
            rerun=clamp_float(var("QUERY_COALESCE_RERUN_SECONDS"), RERUN, RERUN_RANGE),
            poll_budget=clamp_float(var("QUERY_COALESCE_POLL_SECONDS"), POLL_BUDGET, POLL_RANGE),
            stale_after=clamp_float(var("QUERY_COALESCE_STALE_SECONDS"), STALE_AFTER, STALE_RANGE),
            backend_timeout=clamp_float(var("QUERY_BACKEND_TIMEOUT_SECONDS"), BACKEND_TIMEOUT, TIMEOUT_RANGE),
            min_chars=clamp_int(var("QUERY_MIN_CHARS"), MIN_QUERY_CHARS, MIN_CHARS_RANGE),
        )


def resolve_cache_base(explicit: str | Path | None = None, environ: dict[str, str] | None = None) -> Path:
    """Pick the scratch base directory: explicit, launcher env vars, then TMPDIR."""
    env = os.environ if environ is None else environ
    if explicit:
        return Path(explicit).expanduser()
    for name in CACHE_DIR_ENV_VARS:
        if env.get(name):
            return Path(env[name]).expanduser()
    return Path(env.get("TMPDIR") or "/tmp") / FALLBACK_CACHE_DIR
