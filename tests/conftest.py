"""Shared fixtures."""

import pytest

from coalesce.container import Container
from coalesce.repositories import CacheStore, LockStore, RequestStore, StateDir
from providers import BackendSpec
from settings import CoalesceSettings
from tests.fakes import FakeClock, RecordingDispatcher, StubBackend

WORKFLOW = "wiki-search"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def state(tmp_path):
    return StateDir(tmp_path, WORKFLOW)


@pytest.fixture
def settings():
    return CoalesceSettings(cache_ttl=10, settle=2.0, rerun=0.4, poll_budget=0.3, stale_after=30.0, backend_timeout=10.0)


@pytest.fixture
def cache(state, settings, clock):
    return CacheStore(state, settings.cache_ttl, clock)


@pytest.fixture
def locks(state, settings, clock):
    return LockStore(state, settings.stale_after, clock)


@pytest.fixture
def requests(state, clock):
    return RequestStore(state, clock)


@pytest.fixture
def spec():
    return BackendSpec(kind="import", target="tests.fakes:echo")


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def backend():
    return StubBackend()


@pytest.fixture
def make_container(tmp_path, spec, settings, dispatcher, backend, clock):
    """Container factory sharing one namespace, like consecutive keystrokes."""

    def _make(**overrides):
        kwargs = dict(
            workflow=WORKFLOW,
            backend=spec,
            settings=settings,
            cache_base=tmp_path,
            label="Wiki",
            dispatcher=dispatcher,
            backend_impl=backend,
            clock=clock,
            sleep=clock.sleep,
        )
        kwargs.update(overrides)
        return Container(**kwargs)

    return _make
