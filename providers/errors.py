"""Backend failure taxonomy."""


class BackendError(Exception):
    """Backend call failed. `kind` selects the user-facing placeholder."""

    kind = "backend"

    def __init__(self, message: str = "backend request failed"):
        self.message = message
        super().__init__(self.message)


class BackendTimeout(BackendError):
    """Backend did not answer within the worker timeout."""

    kind = "timeout"


class BackendUnavailable(BackendError):
    """Network, DNS, TLS or 5xx failure."""

    kind = "unavailable"


class MalformedPayload(BackendError):
    """Backend answered with something that is not a result list."""

    kind = "malformed"


class MissingCredential(BackendError):
    """API key or token missing or rejected."""

    kind = "credential"


class InvalidConfig(BackendError):
    """Workflow configuration rejected by the backend."""

    kind = "config"


class BackendMissing(BackendError):
    """Required backend executable or module cannot be found."""

    kind = "missing"


ERROR_KINDS: dict[str, type[BackendError]] = {
    cls.kind: cls
    for cls in (
        BackendError,
        BackendTimeout,
        BackendUnavailable,
        MalformedPayload,
        MissingCredential,
        InvalidConfig,
        BackendMissing,
    )
}


def error_from_kind(kind: str, message: str) -> BackendError:
    """Rebuild an error published by a worker."""
    return ERROR_KINDS.get(kind, BackendError)(message)


_TIMEOUT_HINTS = ("timed out", "timeout")
_UNAVAILABLE_HINTS = (
    "connection",
    "dns",
    "tls",
    "unavailable",
    "request failed",
    "status 500",
    "status 502",
    "status 503",
    "status 504",
    "api error (5",
)
_CREDENTIAL_HINTS = ("api key", "api_key", "token", "unauthorized", "forbidden", "status 401", "status 403")
_CONFIG_HINTS = ("invalid config", "invalid value", "must be", "unsupported")
_MALFORMED_HINTS = ("malformed", "invalid json", "invalid response", "empty response", "unexpected token")


def classify_message(message: str) -> BackendError:
    """Map free-form backend stderr to an error kind."""
    lower = message.lower()
    if any(h in lower for h in _TIMEOUT_HINTS):
        return BackendTimeout(message)
    if any(h in lower for h in _MALFORMED_HINTS):
        return MalformedPayload(message)
    if any(h in lower for h in _CREDENTIAL_HINTS):
        return MissingCredential(message)
    if any(h in lower for h in _UNAVAILABLE_HINTS):
        return BackendUnavailable(message)
    if any(h in lower for h in _CONFIG_HINTS):
        return InvalidConfig(message)
    return BackendError(message)
