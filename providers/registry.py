"""Serializable backend description, rebuilt inside the detached worker."""

import importlib
from typing import Any, Literal

from pydantic import BaseModel, Field

from providers.base import Backend, HttpBackend
from providers.command import CommandBackend
from providers.errors import BackendMissing, InvalidConfig


class BackendSpec(BaseModel):
    """How to construct a backend. Crosses the process boundary as JSON."""

    kind: Literal["command", "http", "import"]
    target: str
    args: list[str] = Field(default_factory=list)
    bin_env: str | None = None
    candidates: list[str] = Field(default_factory=list)
    headers: dict[str, str] = Field(default_factory=dict)

    def identity(self) -> str:
        """Stable string folded into cache keys."""
        headers = [f"{name}:{value}" for name, value in sorted(self.headers.items())]
        return "|".join([self.kind, self.target, *self.args, *headers])


class FunctionBackend:
    """Adapt a plain `fn(query) -> payload` callable."""

    def __init__(self, fn):
        self._fn = fn

    def fetch(self, query: str) -> Any:
        return self._fn(query)


def load_object(path: str) -> Any:
    """Import `package.module:attr`."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise InvalidConfig(f"invalid config: backend must look like module:attr, got {path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise BackendMissing(f"backend module {module_name} not found") from e
    obj = module
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise BackendMissing(f"backend {path} not found") from e
    return obj


def build_backend(spec: BackendSpec, timeout: float) -> Backend:
    if spec.kind == "command":
        return CommandBackend(
            spec.target,
            args=spec.args,
            bin_env=spec.bin_env,
            candidates=spec.candidates,
            timeout=timeout,
        )
    if spec.kind == "http":
        return HttpBackend(spec.target, timeout=timeout, headers=spec.headers)

    obj = load_object(spec.target)
    if isinstance(obj, type):
        return obj()
    if hasattr(obj, "fetch"):
        return obj
    if callable(obj):
        return FunctionBackend(obj)
    raise InvalidConfig(f"invalid config: {spec.target} is not a backend")
