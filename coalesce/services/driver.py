"""Result driver - every outcome becomes a well-formed launcher response."""

import re
from collections.abc import Callable
from typing import Any

from loguru import logger
from pydantic import ValidationError

from coalesce.models.feedback import Feedback, pending, placeholder
from coalesce.models.state import CacheEntry
from providers.errors import BackendError, MalformedPayload, error_from_kind

_SECRET_KEYS = (
    "client_secret",
    "secret",
    "token",
    "password",
    "apikey",
    "api_key",
    "authorization",
)
_SECRET_PATTERN = re.compile(
    r"(?P<name>(?:" + "|".join(_SECRET_KEYS) + r")\s*[=:]\s*)(?:bearer\s+)?(?P<value>[^\s,;&\"']+)",
    re.IGNORECASE,
)
_BEARER_PATTERN = re.compile(r"(?P<name>\bbearer\s+)(?P<value>[^\s,;&\"']+)", re.IGNORECASE)


def redact_sensitive(text: str) -> str:
    """Hide credential values that leak into backend error text."""
    text = _SECRET_PATTERN.sub(lambda m: m.group(0)[: m.start("value") - m.start()] + "[REDACTED]", text)
    return _BEARER_PATTERN.sub(lambda m: m.group("name") + "[REDACTED]", text)


def normalize_error_message(message: str) -> str:
    """Collapse whitespace and drop a leading `error:` tag."""
    value = " ".join((message or "").split())
    for prefix in ("error: ", "Error: "):
        if value.startswith(prefix):
            value = value[len(prefix):]
    return redact_sensitive(value)


def validate_payload(payload: Any) -> Feedback:
    """Check the payload is a feedback document whose items are titled objects."""
    if not isinstance(payload, dict):
        raise MalformedPayload("response is not a JSON object")
    if not isinstance(payload.get("items"), list):
        raise MalformedPayload("response has no items array")
    try:
        feedback = Feedback.model_validate(payload)
    except ValidationError as e:
        raise MalformedPayload(f"invalid response shape ({e.error_count()} errors)") from e
    feedback.rerun = None
    return feedback


class ResultDriver:
    """Render results, errors and pending states for one workflow."""

    def __init__(
        self,
        label: str = "Search",
        pending_title: str | None = None,
        pending_subtitle: str = "Waiting for final query before calling the backend.",
    ):
        self.label = label
        self.pending_title = pending_title or f"Searching {label}..."
        self.pending_subtitle = pending_subtitle

    def success(self, payload: Any, query: str = "") -> Feedback:
        try:
            feedback = validate_payload(payload)
        except MalformedPayload as e:
            return self.error(e)
        if not feedback.items:
            subtitle = f'No results for "{query}".' if query else "Try a different query."
            return placeholder("No results found", subtitle)
        return feedback

    def error(self, exc: BackendError) -> Feedback:
        """Stable placeholder per failure kind."""
        message = normalize_error_message(exc.message) or f"{self.label} request failed"
        logger.warning("{} failure ({}): {}", self.label, exc.kind, message)

        if exc.kind == "timeout":
            return placeholder(f"{self.label} timed out", "The service did not answer in time. Retry shortly.")
        if exc.kind == "unavailable":
            return placeholder(f"{self.label} unavailable", "Cannot reach the service now. Check network and retry.")
        if exc.kind == "malformed":
            return placeholder("Malformed response", f"{self.label} returned an unexpected payload.")
        if exc.kind == "credential":
            return placeholder(
                f"{self.label} credentials missing",
                "Set the API key or token in workflow configuration, then retry.",
            )
        if exc.kind == "config":
            return placeholder(f"Invalid {self.label} workflow config", message)
        if exc.kind == "missing":
            return placeholder("Workflow runtime error", message)
        return placeholder(f"{self.label} error", message)

    def from_cache(self, entry: CacheEntry, query: str = "") -> Feedback:
        if entry.status == "ok":
            return self.success(entry.payload, query)
        payload = entry.payload if isinstance(entry.payload, dict) else {}
        return self.error(error_from_kind(str(payload.get("kind", "backend")), str(payload.get("message", ""))))

    def pending(self, rerun: float) -> Feedback:
        return pending(self.pending_title, self.pending_subtitle, rerun)

    def fetch(self, fetch: Callable[[str], Any], query: str) -> Feedback:
        """Call the backend inline; no exception escapes."""
        try:
            return self.success(fetch(query), query)
        except BackendError as e:
            return self.error(e)
        except Exception as e:
            logger.exception("Backend crashed")
            return self.crash(e)

    def crash(self, exc: BaseException) -> Feedback:
        message = normalize_error_message(str(exc)) or exc.__class__.__name__
        return placeholder("Workflow runtime error", message)
