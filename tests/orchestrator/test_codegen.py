"""Tests for per-section code generation."""

from unittest.mock import AsyncMock, patch

import pytest

from protoforge.config import GenerationPreferences
from protoforge.llm.client import MalformedResponseError, TransportError
from protoforge.orchestrator.codegen import (
    extract_code,
    fallback_section_code,
    generate_code_stream,
)
from protoforge.orchestrator.planner import plan_from_payload


@pytest.fixture
def plan(plan_payload):
    return plan_from_payload(plan_payload).approve()


class TestExtractCode:
    def test_unfenced_is_html(self) -> None:
        assert extract_code("  <div>x</div>\n") == ("<div>x</div>", "html")

    def test_fence_language_picks_type(self) -> None:
        assert extract_code("```css\n.a { color: red; }\n```") == (".a { color: red; }", "css")
        assert extract_code("```javascript\nrun();\n```") == ("run();", "js")
        assert extract_code("```js\nrun();\n```")[1] == "js"
        assert extract_code("```html\n<p>x</p>\n```") == ("<p>x</p>", "html")

    def test_prose_around_fence_dropped(self) -> None:
        text = "Here you go:\n```html\n<p>x</p>\n```\nEnjoy!"
        assert extract_code(text) == ("<p>x</p>", "html")

    def test_unterminated_fence(self) -> None:
        """Test that a stream cut off before the closing fence still yields the code."""
        assert extract_code("```html\n<p>x</p>") == ("<p>x</p>", "html")


class TestFallbackSectionCode:
    def test_tailwind_template(self) -> None:
        code = fallback_section_code("Contact Form", "tailwind")
        assert code.startswith('<section class="py-8 px-4 bg-white">')
        assert "Contact Form</h2>" in code
        assert "This is the contact form section of your prototype." in code
        assert "<style>" not in code

    def test_css_template_scopes_styles(self) -> None:
        code = fallback_section_code("Contact Form", "css")
        assert code.startswith('<section class="contact-form">')
        assert ".contact-form .container {" in code
        assert code.endswith("</style>")


class TestSectionStream:
    """Tests for streaming, retry and fallback."""

    @pytest.mark.asyncio
    async def test_streams_chunks(
        self, fake_gateway_cls, plan, preferences, generation_settings
    ) -> None:
        gateway = fake_gateway_cls(streams=[["<section>", "Hi", "</section>"]])
        stream = generate_code_stream(gateway, plan, "Hero Banner", preferences, generation_settings)

        chunks = [chunk async for chunk in stream]

        assert chunks == ["<section>", "Hi", "</section>"]
        assert stream.content == "<section>Hi</section>"
        assert stream.degraded is False
        assert stream.attempts == 1
        assert gateway.stream_calls[0]["stage"] == "section"

    @pytest.mark.asyncio
    async def test_retry_after_transport_error(
        self, fake_gateway_cls, plan, preferences, generation_settings
    ) -> None:
        gateway = fake_gateway_cls(
            streams=[TransportError("section", "reset"), ["<p>ok</p>"]]
        )
        stream = generate_code_stream(gateway, plan, "Hero Banner", preferences, generation_settings)

        content = await stream.collect()

        assert content == "<p>ok</p>"
        assert stream.attempts == 2
        assert stream.degraded is False

    @pytest.mark.asyncio
    async def test_mid_stream_failure_keeps_final_attempt_only(
        self, fake_gateway_cls, plan, preferences, generation_settings
    ) -> None:
        """Test that content reflects the successful attempt, not the broken one."""
        gateway = fake_gateway_cls(
            streams=[(["<p>par"], TransportError("section", "reset")), ["<p>full</p>"]]
        )
        stream = generate_code_stream(gateway, plan, "Hero Banner", preferences, generation_settings)

        chunks = [chunk async for chunk in stream]

        assert chunks == ["<p>par", "<p>full</p>"]
        assert stream.content == "<p>full</p>"

    @pytest.mark.asyncio
    async def test_exhausted_retries_stream_fallback_per_character(
        self, fake_gateway_cls, plan, preferences, generation_settings
    ) -> None:
        """GIVEN every attempt failing / WHEN consumed / THEN fallback template emitted char by char."""
        gateway = fake_gateway_cls(
            streams=[
                TransportError("section", "down"),
                MalformedResponseError("section", "No content received from stream"),
                TransportError("section", "down"),
            ]
        )
        stream = generate_code_stream(gateway, plan, "Hero Banner", preferences, generation_settings)

        chunks = [chunk async for chunk in stream]

        expected = fallback_section_code("Hero Banner", "tailwind")
        assert all(len(chunk) == 1 for chunk in chunks)
        assert "".join(chunks) == expected
        assert stream.content == expected
        assert stream.degraded is True
        assert stream.attempts == generation_settings.stream_retries + 1
        assert len(gateway.stream_calls) == 3

    @pytest.mark.asyncio
    async def test_fallback_respects_styling(
        self, fake_gateway_cls, plan, generation_settings
    ) -> None:
        gateway = fake_gateway_cls()
        stream = generate_code_stream(
            gateway, plan, "Hero Banner", GenerationPreferences(styling="css"), generation_settings
        )
        assert await stream.collect() == fallback_section_code("Hero Banner", "css")

    @pytest.mark.asyncio
    async def test_linear_backoff(
        self, fake_gateway_cls, plan, preferences, generation_settings
    ) -> None:
        """Test that waits grow linearly and the fallback delay is applied per character."""
        settings = generation_settings.model_copy(
            update={"backoff_scale": 1.0, "fallback_char_delay": 0.01}
        )
        gateway = fake_gateway_cls()
        stream = generate_code_stream(gateway, plan, "Hero Banner", preferences, settings)

        with patch("protoforge.orchestrator.codegen.asyncio.sleep", new=AsyncMock()) as sleep:
            await stream.collect()

        waits = [call.args[0] for call in sleep.await_args_list]
        assert waits[:2] == [1.0, 2.0]
        assert set(waits[2:]) == {0.01}
        assert len(waits[2:]) == len(stream.content)

    @pytest.mark.asyncio
    async def test_single_pass(
        self, fake_gateway_cls, plan, preferences, generation_settings
    ) -> None:
        gateway = fake_gateway_cls(streams=[["x"]])
        stream = generate_code_stream(gateway, plan, "Hero Banner", preferences, generation_settings)
        await stream.collect()

        with pytest.raises(RuntimeError, match="single-pass"):
            await stream.collect()

    @pytest.mark.asyncio
    async def test_cancel_stops_fallback(
        self, fake_gateway_cls, plan, preferences, generation_settings
    ) -> None:
        gateway = fake_gateway_cls()
        stream = generate_code_stream(gateway, plan, "Hero Banner", preferences, generation_settings)

        received = []
        async for chunk in stream:
            received.append(chunk)
            if len(received) == 5:
                stream.cancel()

        assert len(received) == 5
