"""Coalescing services."""

from coalesce.services.coordinator import Coordinator, Resolution
from coalesce.services.driver import ResultDriver, normalize_error_message, redact_sensitive, validate_payload
from coalesce.services.policy import QueryPolicy, resolve_query_input
from coalesce.services.worker import Dispatcher, SubprocessDispatcher, Worker, WorkerJob

__all__ = [
    "Coordinator",
    "Resolution",
    "ResultDriver",
    "normalize_error_message",
    "redact_sensitive",
    "validate_payload",
    "QueryPolicy",
    "resolve_query_input",
    "Dispatcher",
    "SubprocessDispatcher",
    "Worker",
    "WorkerJob",
]
