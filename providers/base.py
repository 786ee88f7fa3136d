"""Backend collaborator protocol and the HTTP JSON adapter."""

import asyncio
from typing import Any, Protocol
from urllib.parse import quote

import httpx
from loguru import logger
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from providers.errors import (
    BackendError,
    BackendTimeout,
    BackendUnavailable,
    InvalidConfig,
    MalformedPayload,
    MissingCredential,
)


class Backend(Protocol):
    """A single opaque operation: query text in, feedback-shaped payload out."""

    def fetch(self, query: str) -> Any: ...


def _is_retryable_error(exc: BaseException) -> bool:
    """Check if exception is retryable (network errors + 5xx server errors)."""
    if isinstance(exc, (httpx.ReadError, httpx.ConnectError)):
        return True
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code >= 500


class HttpBackend:
    """Async JSON GET against a URL template containing `{query}`."""

    def __init__(
        self,
        url_template: str,
        timeout: float = 10.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if "{query}" not in url_template:
            raise InvalidConfig("invalid config: url template needs a {query} placeholder")
        self._url_template = url_template
        self._timeout = timeout
        self._headers = headers or {}
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._request_count = 0

    async def __aenter__(self):
        self._client = httpx.AsyncClient(timeout=self._timeout, headers=self._headers, transport=self._transport)
        return self

    async def __aexit__(self, *_):
        logger.debug("HTTP requests: {}", self._request_count)
        if self._client:
            await self._client.aclose()

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=1),
        retry=retry_if_exception(_is_retryable_error),
        reraise=True,
    )
    async def _get(self, url: str) -> Any:
        """GET request with retry logic."""
        self._request_count += 1
        resp = await self._client.get(url)
        resp.raise_for_status()
        return resp.json()

    async def _fetch(self, query: str) -> Any:
        url = self._url_template.replace("{query}", quote(query, safe=""))
        async with self:
            return await self._get(url)

    def fetch(self, query: str) -> Any:
        try:
            return asyncio.run(self._fetch(query))
        except httpx.TimeoutException as e:
            raise BackendTimeout(f"request timed out after {self._timeout}s") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status in (401, 403):
                raise MissingCredential(f"request rejected: status {status}") from e
            if status >= 500:
                raise BackendUnavailable(f"service unavailable: status {status}") from e
            raise BackendError(f"request failed: status {status}") from e
        except httpx.RequestError as e:
            raise BackendUnavailable(f"connection failed: {e}") from e
        except ValueError as e:
            raise MalformedPayload(f"invalid json response: {e}") from e
