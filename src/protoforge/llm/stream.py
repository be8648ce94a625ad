"""Frame decoding and the single-pass token stream.

Streamed responses arrive as lines of the form ``data: <payload>``; the payload
is either the literal ``[DONE]`` terminator or a JSON chunk exposing
``choices[0].delta.content``.

Pausing and cancelling are cooperative: they are honoured between tokens, never
by interrupting a network read that is already in flight.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_TOKEN = "[DONE]"


@dataclass(frozen=True)
class Frame:
    """One decoded stream line. ``done`` marks the terminator."""

    content: str | None = None
    done: bool = False


def decode_frame(line: str) -> Frame | None:
    """Decode a single stream line.

    Returns None for lines that carry nothing (blank lines, comments, other
    SSE fields, payloads that are not valid JSON, chunks without content).
    """
    line = line.strip()
    if not line.startswith(DATA_PREFIX):
        return None

    payload = line[len(DATA_PREFIX):].strip()
    if payload == DONE_TOKEN:
        return Frame(done=True)

    try:
        chunk = json.loads(payload)
        content = chunk["choices"][0]["delta"].get("content")
    except (json.JSONDecodeError, KeyError, IndexError, TypeError, AttributeError):
        logger.debug("stream_frame_skipped", extra={"payload_preview": payload[:100]})
        return None

    if not content:
        return None
    return Frame(content=content)


class TokenStream:
    """Lazy, finite, single-pass async sequence of text tokens.

    Wraps a factory producing the underlying async iterator so the network
    request starts only when the consumer begins iterating.
    """

    def __init__(self, factory: Callable[[], AsyncIterator[str]]) -> None:
        self._factory = factory
        self._iterator: AsyncIterator[str] | None = None
        self._started = False
        self._closed = False
        self._cancelled = False
        self._resume = asyncio.Event()
        self._resume.set()

    def __aiter__(self) -> TokenStream:
        if self._started:
            raise RuntimeError("TokenStream already consumed; streams are single-pass")
        self._started = True
        self._iterator = self._factory()
        return self

    async def __anext__(self) -> str:
        if self._iterator is None:
            raise RuntimeError("TokenStream must be iterated with 'async for'")
        if self._closed:
            raise StopAsyncIteration
        await self._resume.wait()
        if self._cancelled:
            await self.aclose()
            raise StopAsyncIteration
        try:
            return await self._iterator.__anext__()
        except StopAsyncIteration:
            await self.aclose()
            raise

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def paused(self) -> bool:
        return not self._resume.is_set()

    def pause(self) -> None:
        """Hold delivery before the next token (best effort)."""
        self._resume.clear()

    def resume(self) -> None:
        self._resume.set()

    def cancel(self) -> None:
        """Stop delivery at the next token boundary."""
        self._cancelled = True
        self._resume.set()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._iterator is not None and hasattr(self._iterator, "aclose"):
            await self._iterator.aclose()
