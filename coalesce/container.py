"""Per-workflow wiring - built once per invocation, never shared globally."""

import time
from collections.abc import Callable
from pathlib import Path

from loguru import logger

from coalesce.models.feedback import Feedback
from coalesce.models.query import Terminal
from coalesce.repositories import CacheStore, LockStore, RequestStore, StateDir
from coalesce.services.coordinator import Coordinator, Resolution
from coalesce.services.driver import ResultDriver
from coalesce.services.policy import QueryPolicy
from coalesce.services.worker import Dispatcher, SubprocessDispatcher
from providers import Backend, BackendError, BackendSpec, build_backend, resolve_binary
from settings import CoalesceSettings


class Container:
    """Stores and services for one workflow namespace."""

    def __init__(
        self,
        workflow: str,
        backend: BackendSpec,
        settings: CoalesceSettings,
        cache_base: Path,
        params: dict[str, str] | None = None,
        label: str = "Search",
        dispatcher: Dispatcher | None = None,
        backend_impl: Backend | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.backend_spec = backend
        self._backend_impl = backend_impl

        # Stores (one namespace per workflow)
        self.state = StateDir(cache_base, workflow)
        self.cache = CacheStore(self.state, settings.cache_ttl, clock)
        self.locks = LockStore(self.state, settings.stale_after, clock)
        self.requests = RequestStore(self.state, clock)

        # Services
        key_params = {**(params or {}), "backend": backend.identity()}
        self.policy = QueryPolicy(workflow, settings.min_chars, params=key_params, label=label)
        self.driver = ResultDriver(label=label)
        self.coordinator = Coordinator(
            cache=self.cache,
            locks=self.locks,
            requests=self.requests,
            dispatcher=dispatcher or SubprocessDispatcher(),
            backend=backend,
            settings=settings,
            clock=clock,
            sleep=sleep,
        )

    def backend(self) -> Backend:
        if self._backend_impl is None:
            self._backend_impl = build_backend(self.backend_spec, self.settings.backend_timeout)
        return self._backend_impl

    def check_setup(self) -> None:
        """Fail fast when a command backend's executable is not installed."""
        spec = self.backend_spec
        if spec.kind == "command" and self._backend_impl is None:
            resolve_binary(spec.target, spec.bin_env, spec.candidates)

    def run(self, raw_query: str | None) -> Feedback:
        """Full pipeline for one keystroke. Always returns a well-formed response."""
        try:
            decision = self.policy.classify(raw_query)
            if isinstance(decision, Terminal):
                return decision.feedback

            self.check_setup()
            query = decision.query
            resolution = self.coordinator.resolve(query)
            logger.debug("{!r} -> {}", query.text, resolution.state)
            return self.render(resolution, query.text)
        except BackendError as e:
            return self.driver.error(e)
        except Exception as e:
            logger.exception("Script filter failed")
            return self.driver.crash(e)

    def render(self, resolution: Resolution, text: str) -> Feedback:
        if resolution.resolved:
            return self.driver.from_cache(resolution.entry, text)
        if resolution.needs_fetch:
            return self.driver.fetch(lambda q: self.backend().fetch(q), text)
        return self.driver.pending(resolution.rerun)
