"""Unit tests for the gateway client."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import litellm
import pytest

from protoforge.llm.client import GatewayClient, MalformedResponseError, TransportError


def _completion(content):
    response = MagicMock()
    response.choices[0].message.content = content
    return response


def _sse(*chunks: str, done: bool = True) -> str:
    lines = [
        "data: " + json.dumps({"choices": [{"delta": {"content": chunk}}]})
        for chunk in chunks
    ]
    if done:
        lines.append("data: [DONE]")
    return "\n\n".join(lines) + "\n\n"


def _client(gateway_settings, handler) -> tuple[GatewayClient, httpx.AsyncClient]:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GatewayClient(gateway_settings, http_client=http), http


class TestComplete:
    """Tests for non-streaming completions."""

    @pytest.mark.asyncio
    async def test_returns_text_content(self, gateway_settings) -> None:
        """Test that complete returns choices[0].message.content."""
        client = GatewayClient(gateway_settings)
        with patch(
            "protoforge.llm.client.litellm.acompletion",
            new=AsyncMock(return_value=_completion("Hello")),
        ):
            result = await client.complete([{"role": "user", "content": "hi"}])

        assert result == "Hello"

    @pytest.mark.asyncio
    async def test_passes_gateway_and_disables_retries(self, gateway_settings) -> None:
        """Test that the gateway URL is the api_base and LiteLLM retries are off."""
        client = GatewayClient(gateway_settings)
        mock = AsyncMock(return_value=_completion("ok"))
        with patch("protoforge.llm.client.litellm.acompletion", new=mock):
            await client.complete([{"role": "user", "content": "hi"}], temperature=0.1)

        kwargs = mock.call_args.kwargs
        assert kwargs["api_base"] == "http://gateway.test/v1"
        assert kwargs["model"] == "openai/test-model"
        assert kwargs["max_retries"] == 0
        assert kwargs["stream"] is False
        assert kwargs["temperature"] == 0.1
        assert kwargs["max_tokens"] == gateway_settings.max_tokens
        assert kwargs["api_key"] == "test-key"

    @pytest.mark.asyncio
    async def test_api_error_raises_transport_error(self, gateway_settings) -> None:
        """Test that litellm APIError is re-raised as TransportError with the stage."""
        client = GatewayClient(gateway_settings)
        error = litellm.exceptions.APIError(
            status_code=503,
            message="Service unavailable",
            llm_provider="openai",
            model="test-model",
        )
        with patch(
            "protoforge.llm.client.litellm.acompletion", new=AsyncMock(side_effect=error)
        ):
            with pytest.raises(TransportError) as exc_info:
                await client.complete([{"role": "user", "content": "hi"}], stage="plan")

        assert exc_info.value.stage == "plan"
        assert "API error" in exc_info.value.message
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_unexpected_error_raises_transport_error(self, gateway_settings) -> None:
        client = GatewayClient(gateway_settings)
        with patch(
            "protoforge.llm.client.litellm.acompletion",
            new=AsyncMock(side_effect=RuntimeError("socket closed")),
        ):
            with pytest.raises(TransportError, match="socket closed"):
                await client.complete([{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_empty_content_raises_malformed(self, gateway_settings) -> None:
        """Test that an empty answer is a MalformedResponseError, not a transport one."""
        client = GatewayClient(gateway_settings)
        with patch(
            "protoforge.llm.client.litellm.acompletion",
            new=AsyncMock(return_value=_completion("")),
        ):
            with pytest.raises(MalformedResponseError):
                await client.complete([{"role": "user", "content": "hi"}])


class TestStream:
    """Tests for streaming completions over httpx."""

    @pytest.mark.asyncio
    async def test_yields_tokens_until_done(self, gateway_settings) -> None:
        """Test that content deltas are yielded in order and [DONE] ends the stream."""
        body = _sse("<div>", "Hi", "</div>") + "data: " + json.dumps(
            {"choices": [{"delta": {"content": "after done"}}]}
        ) + "\n\n"
        client, http = _client(gateway_settings, lambda request: httpx.Response(200, text=body))

        tokens = [token async for token in client.stream([{"role": "user", "content": "x"}])]
        await http.aclose()

        assert tokens == ["<div>", "Hi", "</div>"]

    @pytest.mark.asyncio
    async def test_request_shape(self, gateway_settings) -> None:
        """Test that the wire request uses the bare model name and stream=true."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["payload"] = json.loads(request.content)
            return httpx.Response(200, text=_sse("ok"))

        client, http = _client(gateway_settings, handler)
        async for _ in client.stream([{"role": "user", "content": "x"}]):
            pass
        await http.aclose()

        assert seen["url"] == "http://gateway.test/v1/chat/completions"
        assert seen["auth"] == "Bearer test-key"
        assert seen["payload"]["model"] == "test-model"
        assert seen["payload"]["stream"] is True
        assert seen["payload"]["messages"] == [{"role": "user", "content": "x"}]

    @pytest.mark.asyncio
    async def test_skips_invalid_json_frames(self, gateway_settings) -> None:
        body = "data: {not json}\n\n: keep-alive\n\n" + _sse("A", "B")
        client, http = _client(gateway_settings, lambda request: httpx.Response(200, text=body))

        tokens = [token async for token in client.stream([])]
        await http.aclose()

        assert tokens == ["A", "B"]

    @pytest.mark.asyncio
    async def test_error_status_raises_transport_error(self, gateway_settings) -> None:
        client, http = _client(gateway_settings, lambda request: httpx.Response(502))

        with pytest.raises(TransportError, match="502"):
            async for _ in client.stream([], stage="section"):
                pass
        await http.aclose()

    @pytest.mark.asyncio
    async def test_connection_failure_raises_transport_error(self, gateway_settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client, http = _client(gateway_settings, handler)
        with pytest.raises(TransportError):
            async for _ in client.stream([]):
                pass
        await http.aclose()

    @pytest.mark.asyncio
    async def test_stream_without_content_raises_malformed(self, gateway_settings) -> None:
        """Test that a stream ending with no content is a MalformedResponseError."""
        client, http = _client(
            gateway_settings, lambda request: httpx.Response(200, text="data: [DONE]\n\n")
        )

        with pytest.raises(MalformedResponseError, match="No content"):
            async for _ in client.stream([]):
                pass
        await http.aclose()

    @pytest.mark.asyncio
    async def test_no_request_until_iteration(self, gateway_settings) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, text=_sse("x"))

        client, http = _client(gateway_settings, handler)
        stream = client.stream([])
        assert calls == []

        async for _ in stream:
            pass
        await http.aclose()
        assert len(calls) == 1


class TestHealthCheck:
    """Tests for health_check."""

    @pytest.mark.asyncio
    async def test_healthy(self, gateway_settings) -> None:
        client = GatewayClient(gateway_settings)
        mock = AsyncMock(return_value=_completion("."))
        with patch("protoforge.llm.client.litellm.acompletion", new=mock):
            status = await client.health_check()

        assert status["status"] == "healthy"
        assert "openai/test-model" in status["details"]
        assert mock.call_args.kwargs["max_tokens"] == 1
        assert mock.call_args.kwargs["timeout"] == gateway_settings.health_timeout

    @pytest.mark.asyncio
    async def test_empty_reply_still_healthy(self, gateway_settings) -> None:
        client = GatewayClient(gateway_settings)
        with patch(
            "protoforge.llm.client.litellm.acompletion",
            new=AsyncMock(return_value=_completion(None)),
        ):
            status = await client.health_check()

        assert status["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_unhealthy_without_retry(self, gateway_settings) -> None:
        """Test that a failing gateway is reported once, never retried."""
        client = GatewayClient(gateway_settings)
        mock = AsyncMock(side_effect=RuntimeError("connection refused"))
        with patch("protoforge.llm.client.litellm.acompletion", new=mock):
            status = await client.health_check()

        assert status["status"] == "unhealthy"
        assert "connection refused" in status["details"]
        assert mock.await_count == 1
