"""Shared fixtures: zero-delay settings and a scripted gateway double."""

import json
from typing import Any

import pytest

from protoforge.config import (
    EditSettings,
    GatewaySettings,
    GenerationPreferences,
    GenerationSettings,
)
from protoforge.llm.client import TransportError
from protoforge.llm.stream import TokenStream


class FakeGateway:
    """Stands in for GatewayClient with scripted answers.

    ``completions`` items are strings or exceptions to raise. ``streams``
    items are a list of chunks, an exception, or ``(chunks, exception)`` for
    a stream that fails midway. Running out of script raises TransportError.
    """

    def __init__(
        self,
        completions: list[Any] | None = None,
        streams: list[Any] | None = None,
    ) -> None:
        self.completions = list(completions or [])
        self.streams = list(streams or [])
        self.complete_calls: list[dict[str, Any]] = []
        self.stream_calls: list[dict[str, Any]] = []

    async def complete(self, messages, *, stage="llm", **kwargs):
        self.complete_calls.append({"messages": messages, "stage": stage, **kwargs})
        if not self.completions:
            raise TransportError(stage, "no scripted completion")
        item = self.completions.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def stream(self, messages, *, stage="stream"):
        self.stream_calls.append({"messages": messages, "stage": stage})
        item = self.streams.pop(0) if self.streams else TransportError(stage, "no scripted stream")

        async def tokens():
            if isinstance(item, Exception):
                raise item
            chunks, error = item if isinstance(item, tuple) else (item, None)
            for chunk in chunks:
                yield chunk
            if error is not None:
                raise error

        return TokenStream(tokens)

    async def health_check(self):
        return {"status": "healthy", "details": "fake gateway"}


@pytest.fixture
def fake_gateway_cls():
    return FakeGateway


@pytest.fixture
def generation_settings() -> GenerationSettings:
    return GenerationSettings(
        plan_retries=3,
        stream_retries=2,
        doc_retries=2,
        backoff_scale=0,
        fallback_char_delay=0,
    )


@pytest.fixture
def gateway_settings() -> GatewaySettings:
    return GatewaySettings(
        gateway_url="http://gateway.test/v1",
        model="openai/test-model",
        api_key="test-key",
    )


@pytest.fixture
def edit_settings() -> EditSettings:
    return EditSettings()


@pytest.fixture
def preferences() -> GenerationPreferences:
    return GenerationPreferences()


@pytest.fixture
def plan_payload() -> dict[str, Any]:
    return {
        "id": "plan-landing",
        "components": [
            {
                "id": "hero",
                "name": "Hero Banner",
                "type": "hero",
                "description": "Big headline with call to action",
                "features": ["Headline", "CTA button"],
                "estimatedComplexity": "low",
            },
            {
                "id": "contact",
                "name": "Contact Form",
                "type": "form",
                "description": "Name, email and message",
                "features": ["Validation"],
                "estimatedComplexity": "medium",
            },
        ],
        "architecture": {
            "structure": "Single page",
            "styling": "Tailwind utilities",
            "interactions": "Form submit handler",
            "responsive": True,
        },
        "timeline": {
            "totalMinutes": 4,
            "phases": {"planning": 1, "generation": 2, "documentation": 1},
        },
        "dependencies": ["tailwindcss"],
    }


@pytest.fixture
def plan_response(plan_payload) -> str:
    """Gateway answer with the plan wrapped in prose."""
    return "Here is the plan:\n" + json.dumps(plan_payload) + "\nLet me know!"
