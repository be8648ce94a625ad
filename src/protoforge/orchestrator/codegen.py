"""Per-section code generation over the streaming client.

Each section is generated in isolation: a section that keeps failing degrades
to a fixed template instead of aborting the run. The template is emitted one
character at a time so live consumers see the same shape of output either way.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import AsyncIterator

from protoforge.config import GenerationPreferences, GenerationSettings
from protoforge.llm.client import GatewayClient, GatewayError
from protoforge.llm.prompts import as_messages, prompt_section
from protoforge.llm.stream import TokenStream
from protoforge.models import GenerationPlan, SectionType

logger = logging.getLogger(__name__)

FENCE_PATTERN = re.compile(r"```([\w+-]*)[^\n]*\n(.*?)(?:```|\Z)", re.DOTALL)

FENCE_LANGUAGES: dict[str, SectionType] = {
    "css": "css",
    "js": "js",
    "javascript": "js",
}


def extract_code(text: str) -> tuple[str, SectionType]:
    """Strip a surrounding markdown fence; the fence language picks the type.

    Returns:
        (code, section_type). Unfenced text is returned stripped as html.
    """
    match = FENCE_PATTERN.search(text)
    if match is None:
        return text.strip(), "html"
    language = match.group(1).lower()
    return match.group(2).strip(), FENCE_LANGUAGES.get(language, "html")


def section_slug(section_name: str) -> str:
    return re.sub(r"\s+", "-", section_name.strip().lower())


def fallback_section_code(section_name: str, styling: str) -> str:
    """Minimal section template respecting the styling mode."""
    lower = section_name.lower()
    if styling == "tailwind":
        return f"""<section class="py-8 px-4 bg-white">
  <div class="max-w-4xl mx-auto">
    <h2 class="text-2xl font-bold text-gray-900 mb-4">{section_name}</h2>
    <p class="text-gray-600">This is the {lower} section of your prototype.</p>
  </div>
</section>"""

    cls = section_slug(section_name)
    return f"""<section class="{cls}">
  <div class="container">
    <h2>{section_name}</h2>
    <p>This is the {lower} section of your prototype.</p>
  </div>
</section>

<style>
.{cls} {{
  padding: 2rem 1rem;
  background: white;
}}

.{cls} .container {{
  max-width: 1200px;
  margin: 0 auto;
}}

.{cls} h2 {{
  font-size: 1.5rem;
  font-weight: bold;
  color: #1a1a1a;
  margin-bottom: 1rem;
}}

.{cls} p {{
  color: #666;
}}
</style>"""


class SectionStream:
    """Single-pass async stream of one section's code chunks.

    A transport or empty-stream failure restarts the request (linear backoff,
    ``stream_retries`` additional attempts). Chunks already delivered from a
    failed attempt are not retracted; ``content`` holds only the text of the
    attempt that finished. After the last failure the fallback template is
    streamed and ``degraded`` is set.
    """

    def __init__(
        self,
        client: GatewayClient,
        plan: GenerationPlan,
        section_name: str,
        preferences: GenerationPreferences,
        settings: GenerationSettings,
    ) -> None:
        self.section_name = section_name
        self._client = client
        self._plan = plan
        self._preferences = preferences
        self._settings = settings
        self._started = False
        self._cancelled = False
        self._current: TokenStream | None = None
        self.content = ""
        self.attempts = 0
        self.degraded = False
        self.reason: str | None = None

    def __aiter__(self) -> AsyncIterator[str]:
        if self._started:
            raise RuntimeError("SectionStream already consumed; streams are single-pass")
        self._started = True
        return self._generate()

    def pause(self) -> None:
        if self._current is not None:
            self._current.pause()

    def resume(self) -> None:
        if self._current is not None:
            self._current.resume()

    def cancel(self) -> None:
        """Stop after the next chunk boundary; no further attempts are made."""
        self._cancelled = True
        if self._current is not None:
            self._current.cancel()

    async def collect(self) -> str:
        """Drain the stream and return the final content."""
        async for _ in self:
            pass
        return self.content

    async def _generate(self) -> AsyncIterator[str]:
        messages = as_messages(
            prompt_section(self._plan, self.section_name, self._preferences)
        )
        total = self._settings.stream_retries + 1

        for attempt in range(1, total + 1):
            if self._cancelled:
                return
            self.attempts = attempt
            self._current = self._client.stream(messages, stage="section")
            parts: list[str] = []
            try:
                async for chunk in self._current:
                    parts.append(chunk)
                    yield chunk
            except GatewayError as e:
                self.reason = e.message
                logger.warning(
                    "section_stream_retry",
                    extra={
                        "section": self.section_name,
                        "attempt": attempt,
                        "attempts": total,
                        "error_msg": e.message,
                    },
                )
                if attempt < total:
                    await asyncio.sleep(self._settings.backoff_scale * attempt)
                continue

            self.content = "".join(parts)
            return

        self.degraded = True
        self.content = fallback_section_code(self.section_name, self._preferences.styling)
        logger.warning(
            "section_fallback_used",
            extra={"section": self.section_name, "error_msg": self.reason},
        )
        for char in self.content:
            if self._cancelled:
                return
            yield char
            await asyncio.sleep(self._settings.fallback_char_delay)


def generate_code_stream(
    client: GatewayClient,
    plan: GenerationPlan,
    section_name: str,
    preferences: GenerationPreferences,
    settings: GenerationSettings,
) -> SectionStream:
    """Open the code stream for one planned section; lazy until iterated."""
    return SectionStream(client, plan, section_name, preferences, settings)
