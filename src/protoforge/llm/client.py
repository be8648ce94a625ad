"""Gateway client for LLM completions.

Non-streaming completions go through LiteLLM pointed at the gateway. Streaming
completions are read frame by frame with httpx so tokens reach the caller as
they arrive. LiteLLM's own retries are disabled: backoff belongs to the
orchestrator.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Literal, TypedDict

import httpx
import litellm

from protoforge.config import GatewaySettings
from protoforge.llm.stream import TokenStream, decode_frame

logger = logging.getLogger(__name__)

Message = dict[str, str]

PREVIEW_LENGTH = 500


class GatewayError(Exception):
    """Base for failures talking to the gateway.

    Attributes:
        stage: The pipeline stage that issued the call.
        message: The error message.
    """

    def __init__(self, stage: str, message: str) -> None:
        self.stage = stage
        self.message = message
        super().__init__(f"[{stage}] {message}")


class TransportError(GatewayError):
    """Network failure, timeout or error status reaching the gateway."""


class MalformedResponseError(GatewayError):
    """The gateway answered, but with nothing usable."""


class HealthStatus(TypedDict):
    status: Literal["healthy", "unhealthy"]
    details: str


def _preview(text: str | None) -> str | None:
    if text and len(text) > PREVIEW_LENGTH:
        return text[:PREVIEW_LENGTH] + "..."
    return text


class GatewayClient:
    """Issues completion requests against an OpenAI-compatible gateway."""

    def __init__(
        self,
        settings: GatewaySettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._http = http_client

    @property
    def settings(self) -> GatewaySettings:
        return self._settings

    def _api_key(self) -> str | None:
        key = self._settings.api_key
        return key.get_secret_value() if key else None

    async def complete(
        self,
        messages: list[Message],
        *,
        stage: str = "llm",
        temperature: float | None = None,
        max_tokens: int | None = None,
        timeout: float | None = None,
    ) -> str:
        """Request a non-streaming completion and return its text.

        Raises:
            TransportError: The request did not complete.
            MalformedResponseError: The response carried no content.
        """
        settings = self._settings
        logger.info(
            "llm_call_start",
            extra={
                "stage": stage,
                "model": settings.model,
                "message_count": len(messages),
                "user_preview": _preview(messages[-1]["content"]) if messages else None,
            },
        )

        try:
            response = await litellm.acompletion(
                model=settings.model,
                messages=messages,
                temperature=settings.temperature if temperature is None else temperature,
                max_tokens=settings.max_tokens if max_tokens is None else max_tokens,
                timeout=settings.timeout if timeout is None else timeout,
                api_base=settings.gateway_url,
                api_key=self._api_key(),
                max_retries=0,
                stream=False,
            )
        except (litellm.exceptions.Timeout, litellm.exceptions.APIConnectionError) as e:
            raise TransportError(stage, f"Gateway unreachable: {e}") from e
        except litellm.exceptions.APIError as e:
            raise TransportError(stage, f"API error: {e}") from e
        except Exception as e:
            raise TransportError(stage, f"Unexpected error: {e}") from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, KeyError, TypeError) as e:
            raise MalformedResponseError(stage, f"Unexpected response shape: {e}") from e

        if not content:
            raise MalformedResponseError(stage, "No content received from LLM")

        logger.info(
            "llm_call_complete",
            extra={
                "stage": stage,
                "response_length": len(content),
                "response_preview": _preview(content),
            },
        )
        return content

    def stream(self, messages: list[Message], *, stage: str = "stream") -> TokenStream:
        """Open a streaming completion; nothing is sent until iteration starts.

        The returned stream raises TransportError or MalformedResponseError
        from inside iteration.
        """
        return TokenStream(lambda: self._iter_tokens(messages, stage))

    async def _iter_tokens(
        self, messages: list[Message], stage: str
    ) -> AsyncIterator[str]:
        settings = self._settings
        payload = {
            "model": settings.wire_model,
            "messages": messages,
            "temperature": settings.temperature,
            "max_tokens": settings.max_tokens,
            "stream": True,
        }
        headers = {"Content-Type": "application/json"}
        api_key = self._api_key()
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        http = self._http or httpx.AsyncClient()
        received = False
        try:
            async with http.stream(
                "POST",
                f"{settings.gateway_url}/chat/completions",
                json=payload,
                headers=headers,
                timeout=settings.stream_timeout,
            ) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    frame = decode_frame(line)
                    if frame is None:
                        continue
                    if frame.done:
                        break
                    received = True
                    yield frame.content
        except httpx.HTTPStatusError as e:
            raise TransportError(
                stage, f"Gateway returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(stage, f"Stream failed: {e}") from e
        finally:
            if self._http is None:
                await http.aclose()

        if not received:
            raise MalformedResponseError(stage, "No content received from stream")

    async def health_check(self) -> HealthStatus:
        """One minimal completion with a short timeout. Never retries."""
        try:
            await self.complete(
                [{"role": "user", "content": "test"}],
                stage="health",
                max_tokens=1,
                timeout=self._settings.health_timeout,
            )
        except MalformedResponseError:
            # empty one-token reply: gateway reachable
            pass
        except TransportError as e:
            return {"status": "unhealthy", "details": e.message or "Connection failed"}
        return {
            "status": "healthy",
            "details": f"Connected to {self._settings.model} via {self._settings.gateway_url}",
        }
