"""Tests for frame decoding and TokenStream."""

import asyncio
import json

import pytest

from protoforge.llm.stream import Frame, TokenStream, decode_frame


def _chunk(content) -> str:
    return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]})


class TestDecodeFrame:
    """Tests for decode_frame."""

    def test_content_frame(self) -> None:
        assert decode_frame(_chunk("Hi")) == Frame(content="Hi")

    def test_done_frame(self) -> None:
        assert decode_frame("data: [DONE]") == Frame(done=True)

    def test_no_space_after_prefix(self) -> None:
        assert decode_frame('data:{"choices":[{"delta":{"content":"x"}}]}') == Frame(content="x")

    @pytest.mark.parametrize(
        "line",
        [
            "",
            ": keep-alive",
            "event: message",
            "data: {broken",
            'data: {"choices": []}',
            'data: {"choices": [{"delta": {}}]}',
            _chunk(""),
            _chunk(None),
        ],
    )
    def test_lines_without_content_are_skipped(self, line) -> None:
        """Test that blank, non-data, invalid and empty frames decode to None."""
        assert decode_frame(line) is None


def _stream_of(*tokens: str) -> TokenStream:
    async def tokens_iter():
        for token in tokens:
            yield token

    return TokenStream(tokens_iter)


class TestTokenStream:
    """Tests for the single-pass token stream."""

    @pytest.mark.asyncio
    async def test_yields_all_tokens(self) -> None:
        stream = _stream_of("a", "b", "c")
        assert [t async for t in stream] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_second_iteration_raises(self) -> None:
        """Test that a consumed stream cannot be restarted."""
        stream = _stream_of("a")
        async for _ in stream:
            pass

        with pytest.raises(RuntimeError, match="single-pass"):
            async for _ in stream:
                pass

    @pytest.mark.asyncio
    async def test_factory_not_called_until_iteration(self) -> None:
        calls = []

        def factory():
            calls.append(1)

            async def gen():
                yield "x"

            return gen()

        stream = TokenStream(factory)
        assert calls == []
        assert [t async for t in stream] == ["x"]
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_cancel_stops_at_next_boundary(self) -> None:
        """Test that cancel ends iteration and closes the underlying iterator."""
        closed = []

        async def gen():
            try:
                for token in ["a", "b", "c"]:
                    yield token
            finally:
                closed.append(True)

        stream = TokenStream(gen)
        received = []
        async for token in stream:
            received.append(token)
            stream.cancel()

        assert received == ["a"]
        assert stream.cancelled
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_pause_holds_delivery_until_resume(self) -> None:
        stream = _stream_of("a", "b")
        received = []

        async def consume():
            async for token in stream:
                received.append(token)
                if token == "a":
                    stream.pause()

        task = asyncio.create_task(consume())
        await asyncio.sleep(0.01)
        assert received == ["a"]
        assert stream.paused

        stream.resume()
        await asyncio.wait_for(task, timeout=1)
        assert received == ["a", "b"]
