"""
Source Provider — HTTP fetch layer for raw source payloads.

Adapters never perform I/O. The engine hands each enabled source a
payload, either supplied by the caller or fetched here. Each kind may be
bound to any async callable ``fetcher(agent_id) -> payload``;
``HttpPayloadFetcher`` is the stock one for JSON-over-HTTP sources.

Usage:
    provider = SourceProvider(timeout=5.0)
    fetchers = {
        SourceKind.CODE_HOSTING_ACTIVITY: HttpPayloadFetcher(
            provider, "https://stats.example.com/agents/{agent_id}/code"
        ),
    }
    engine = ReputationEngine(registry, fetchers=fetchers)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any
from urllib.parse import quote

import httpx

from trustfuse.core.exceptions import SourceUnavailableError
from trustfuse.core.logging import get_logger
from trustfuse.core.types import SourceKind
from trustfuse.resilience.retry import RetryPolicy, execute_with_retry

logger = get_logger("trust.provider")

PayloadFetcher = Callable[[str], Awaitable[Any]]

DEFAULT_TIMEOUT = 10.0


class SourceProvider:
    """
    JSON-over-HTTP client shared by every HTTP-backed source.

    Transient failures (timeouts, connection errors, 429/5xx) are retried
    with exponential backoff; anything still failing surfaces as
    SourceUnavailableError.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
        retry_policy: RetryPolicy | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        """
        Args:
            timeout: Per-request timeout in seconds
            http_client: Shared httpx client (for connection pooling).
            retry_policy: Backoff bounds; the module default if None
            headers: Headers sent with every request (e.g. API tokens)
        """
        self._timeout = timeout
        self._http_client = http_client
        self._owns_client = False
        self._retry_policy = retry_policy
        self._headers = dict(headers or {})

    async def _get_client(self) -> httpx.AsyncClient:
        """Lazy-init HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return self._http_client

    async def close(self) -> None:
        """Close owned HTTP client."""
        if self._owns_client and self._http_client:
            await self._http_client.aclose()
            self._http_client = None
            self._owns_client = False

    async def __aenter__(self) -> SourceProvider:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def get_json(
        self,
        url: str,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        kind: SourceKind | None = None,
    ) -> Any:
        """
        GET a URL and decode its JSON body.

        Raises:
            SourceUnavailableError: On a non-2xx response after retries, a
                network failure, or a body that is not JSON
        """
        client = await self._get_client()
        merged_headers = {**self._headers, **(headers or {})}

        async def _request() -> httpx.Response:
            response = await client.get(url, params=params, headers=merged_headers)
            response.raise_for_status()
            return response

        try:
            response = await execute_with_retry(_request, policy=self._retry_policy)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning(f"Source fetch HTTP {status}: {url}")
            raise SourceUnavailableError(
                f"HTTP {status} from {url}", kind=kind, url=url, status_code=status
            ) from e
        except httpx.HTTPError as e:
            logger.warning(f"Source fetch failed: {url} ({type(e).__name__})")
            raise SourceUnavailableError(
                f"Request to {url} failed: {type(e).__name__}", kind=kind, url=url
            ) from e

        try:
            return response.json()
        except ValueError as e:
            raise SourceUnavailableError(
                f"Response from {url} is not JSON",
                kind=kind,
                url=url,
                status_code=response.status_code,
            ) from e


class HttpPayloadFetcher:
    """
    Fetch a source payload from a URL template.

    The template is formatted with the URL-quoted ``agent_id``, e.g.
    ``https://attest.example.com/v1/subjects/{agent_id}``.
    """

    def __init__(
        self,
        provider: SourceProvider,
        url_template: str,
        kind: SourceKind | None = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self._provider = provider
        self._url_template = url_template
        self._kind = kind
        self._params = dict(params or {})
        self._headers = dict(headers or {})

    def url_for(self, agent_id: str) -> str:
        return self._url_template.format(agent_id=quote(agent_id, safe=""))

    async def __call__(self, agent_id: str) -> Any:
        url = self.url_for(agent_id)
        logger.debug(f"Fetching {self._kind.value if self._kind else 'source'} payload: {url}")
        return await self._provider.get_json(
            url, params=self._params or None, headers=self._headers or None, kind=self._kind
        )

    def __repr__(self) -> str:
        return f"HttpPayloadFetcher({self._url_template!r})"


__all__ = ["DEFAULT_TIMEOUT", "HttpPayloadFetcher", "PayloadFetcher", "SourceProvider"]
