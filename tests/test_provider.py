"""
Tests for the HTTP fetch layer and retry policy.

Uses httpx.MockTransport so no network access is needed.
"""

import httpx
import pytest

from trustfuse.core.exceptions import SourceUnavailableError
from trustfuse.core.types import SourceKind
from trustfuse.resilience.retry import RetryPolicy, execute_with_retry, is_transient_error
from trustfuse.trust.provider import HttpPayloadFetcher, SourceProvider

NO_WAIT = RetryPolicy(attempts=3, multiplier=0, wait_min=0, wait_max=0)


def _provider(handler, **kwargs) -> SourceProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SourceProvider(http_client=client, retry_policy=NO_WAIT, **kwargs)


# ─────────────────────────────────────────────────────────────────
# Retry Policy Tests
# ─────────────────────────────────────────────────────────────────

class TestRetryPolicy:
    """Tests for transient error classification and retry execution."""

    def _status_error(self, status: int) -> httpx.HTTPStatusError:
        request = httpx.Request("GET", "https://example.com")
        response = httpx.Response(status, request=request)
        return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_retryable_status(self, status):
        assert is_transient_error(self._status_error(status)) is True

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
    def test_client_errors_not_retried(self, status):
        assert is_transient_error(self._status_error(status)) is False

    def test_network_errors_are_transient(self):
        request = httpx.Request("GET", "https://example.com")
        assert is_transient_error(httpx.ConnectError("refused", request=request))
        assert is_transient_error(httpx.ReadTimeout("slow", request=request))
        assert is_transient_error(TimeoutError())

    def test_other_errors_not_transient(self):
        assert is_transient_error(ValueError("bad input")) is False

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ConnectionError("connection reset")
            return "ok"

        assert await execute_with_retry(flaky, policy=NO_WAIT) == "ok"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_non_transient_not_retried(self):
        calls = []

        async def broken():
            calls.append(1)
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            await execute_with_retry(broken, policy=NO_WAIT)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_attempts(self):
        calls = []

        async def down():
            calls.append(1)
            raise TimeoutError("timeout")

        with pytest.raises(TimeoutError):
            await execute_with_retry(down, policy=NO_WAIT)
        assert len(calls) == 3


# ─────────────────────────────────────────────────────────────────
# Source Provider Tests
# ─────────────────────────────────────────────────────────────────

class TestSourceProvider:
    """Tests for SourceProvider.get_json()."""

    @pytest.mark.asyncio
    async def test_get_json(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["trace"] = request.headers.get("x-trace")
            return httpx.Response(200, json={"score": 82})

        provider = _provider(handler, headers={"Authorization": "Bearer t"})
        data = await provider.get_json(
            "https://attest.example.com/v1", params={"subject": "a"}, headers={"x-trace": "1"}
        )

        assert data == {"score": 82}
        assert seen["url"] == "https://attest.example.com/v1?subject=a"
        assert seen["auth"] == "Bearer t"
        assert seen["trace"] == "1"

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            if len(calls) < 3:
                return httpx.Response(503)
            return httpx.Response(200, json={"ok": True})

        assert await _provider(handler).get_json("https://example.com") == {"ok": True}
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_persistent_server_error(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(500)

        with pytest.raises(SourceUnavailableError) as exc_info:
            await _provider(handler).get_json(
                "https://example.com", kind=SourceKind.ATTESTATION_FEED
            )

        assert exc_info.value.status_code == 500
        assert exc_info.value.kind == SourceKind.ATTESTATION_FEED
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(404)

        with pytest.raises(SourceUnavailableError, match="HTTP 404"):
            await _provider(handler).get_json("https://example.com/missing")
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_network_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(SourceUnavailableError, match="ConnectError") as exc_info:
            await _provider(handler).get_json("https://example.com")
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>oops</html>")

        with pytest.raises(SourceUnavailableError, match="not JSON"):
            await _provider(handler).get_json("https://example.com")

    @pytest.mark.asyncio
    async def test_close_owned_client(self):
        provider = SourceProvider()
        client = await provider._get_client()
        await provider.close()
        assert client.is_closed

    @pytest.mark.asyncio
    async def test_shared_client_not_closed(self):
        client = httpx.AsyncClient()
        async with SourceProvider(http_client=client):
            pass
        assert not client.is_closed
        await client.aclose()


class TestHttpPayloadFetcher:
    """Tests for URL-template fetchers."""

    def test_url_quotes_agent_id(self):
        fetcher = HttpPayloadFetcher(SourceProvider(), "https://x.example.com/agents/{agent_id}")
        assert fetcher.url_for("agent/1 2") == "https://x.example.com/agents/agent%2F1%202"

    @pytest.mark.asyncio
    async def test_fetches_payload(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/agents/agent-1/code"
            return httpx.Response(200, json={"commits": 10})

        fetcher = HttpPayloadFetcher(
            _provider(handler),
            "https://stats.example.com/agents/{agent_id}/code",
            kind=SourceKind.CODE_HOSTING_ACTIVITY,
        )
        assert await fetcher("agent-1") == {"commits": 10}
