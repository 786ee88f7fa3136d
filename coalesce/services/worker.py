"""Background worker - detached process that settles, fetches and publishes.

The worker is launched by the invocation that acquired the coalesce lock and
outlives it. It waits until the query has been unchanged for the settle
window, calls the backend once, publishes the outcome (success or failure)
to the cache store, and always releases its lock on the way out. A worker
that is killed before releasing leaves a lock that later invocations reclaim
once it is older than the staleness ceiling.
"""

import os
import subprocess
import sys
import time
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from loguru import logger
from pydantic import BaseModel

from coalesce.errors import StorageError
from coalesce.repositories import CacheStore, LockStore, RequestStore, StateDir
from coalesce.services.driver import validate_payload
from providers import Backend, BackendError, BackendSpec, build_backend
from settings import BACKEND_TIMEOUT, CACHE_TTL, SETTLE, STALE_AFTER

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SETTLE_POLL = 0.25


class WorkerJob(BaseModel):
    """Everything a worker needs; passed to the child process as JSON."""

    workflow: str
    cache_base: str
    key: str
    query: str
    owner_id: str
    backend: BackendSpec
    cache_ttl: int = CACHE_TTL
    settle: float = SETTLE
    stale_after: float = STALE_AFTER
    backend_timeout: float = BACKEND_TIMEOUT


class Dispatcher(Protocol):
    def dispatch(self, job: WorkerJob) -> None: ...


class SubprocessDispatcher:
    """Spawn `python -m coalesce worker` in its own session, detached from stdio."""

    def __init__(self, python: str = sys.executable):
        self.python = python

    def command_for(self, job: WorkerJob) -> list[str]:
        return [self.python, "-m", "coalesce", "worker", "--job", job.model_dump_json()]

    def dispatch(self, job: WorkerJob) -> None:
        env = dict(os.environ)
        env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(PROJECT_ROOT), env.get("PYTHONPATH")]))
        proc = subprocess.Popen(
            self.command_for(job),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            close_fds=True,
            start_new_session=True,
            env=env,
        )
        logger.debug("Worker dispatched: pid={}, key={}", proc.pid, job.key[:12])


class Worker:
    """Runs one job against the workflow's stores."""

    def __init__(
        self,
        job: WorkerJob,
        backend: Backend | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.job = job
        self._backend = backend
        self._clock = clock
        self._sleep = sleep
        state = StateDir(Path(job.cache_base), job.workflow)
        self.cache = CacheStore(state, job.cache_ttl, clock)
        self.locks = LockStore(state, job.stale_after, clock)
        self.requests = RequestStore(state, clock)

    def wait_for_settle(self) -> bool:
        """True once the key stayed latest for the settle window; False if superseded."""
        job = self.job
        deadline = self._clock() + max(job.stale_after - job.backend_timeout, job.settle)
        while True:
            latest = self.requests.read()
            if latest is not None and latest.key != job.key:
                logger.info("Superseded by {!r}, abandoning {!r}", latest.query, job.query)
                return False

            now = self._clock()
            settled_at = (latest.updated_at if latest else now - job.settle) + job.settle
            remaining = settled_at - now
            if remaining <= 0:
                return True
            if now + remaining > deadline:
                logger.info("Settle window would outlive the lock, abandoning {!r}", job.query)
                return False
            self._sleep(min(remaining, SETTLE_POLL))

    def run(self) -> str:
        """Execute the job. Returns the outcome name; never leaves the lock behind."""
        job = self.job
        try:
            if not self.wait_for_settle():
                return "superseded"

            if self.cache.get(job.key) is not None:
                logger.debug("Already published: {!r}", job.query)
                return "cached"

            try:
                backend = self._backend or build_backend(job.backend, job.backend_timeout)
                payload = backend.fetch(job.query)
                validate_payload(payload)
            except BackendError as e:
                logger.warning("Backend failed for {!r} ({}): {}", job.query, e.kind, e.message)
                self.cache.put(job.key, {"kind": e.kind, "message": e.message}, status="err")
                return "failed"

            self.cache.put(job.key, payload)
            logger.info("Published result for {!r}", job.query)
            return "published"
        except StorageError as e:
            logger.error("Cannot publish {!r}: {}", job.query, e)
            return "storage-error"
        except Exception as e:
            logger.exception("Worker crashed for {!r}", job.query)
            try:
                self.cache.put(job.key, {"kind": "backend", "message": str(e) or e.__class__.__name__}, status="err")
            except StorageError as put_error:
                logger.error("Cannot publish failure for {!r}: {}", job.query, put_error)
            return "crashed"
        finally:
            try:
                self.locks.release(job.key, job.owner_id)
            except StorageError as e:
                logger.error("Lock release failed for {!r}: {}", job.query, e)

