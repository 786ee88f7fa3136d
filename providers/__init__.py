"""Backend collaborators package."""

from providers.base import Backend, HttpBackend
from providers.command import CommandBackend, resolve_binary
from providers.errors import (
    BackendError,
    BackendMissing,
    BackendTimeout,
    BackendUnavailable,
    InvalidConfig,
    MalformedPayload,
    MissingCredential,
    classify_message,
    error_from_kind,
)
from providers.registry import BackendSpec, FunctionBackend, build_backend, load_object

__all__ = [
    # Adapters
    "Backend",
    "HttpBackend",
    "CommandBackend",
    "FunctionBackend",
    "BackendSpec",
    "build_backend",
    "load_object",
    "resolve_binary",
    # Errors
    "BackendError",
    "BackendMissing",
    "BackendTimeout",
    "BackendUnavailable",
    "InvalidConfig",
    "MalformedPayload",
    "MissingCredential",
    "classify_message",
    "error_from_kind",
]
