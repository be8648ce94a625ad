"""Documentation phase: one non-streaming request per generated section."""

from __future__ import annotations

import asyncio
import logging

from protoforge.config import GenerationPreferences, GenerationSettings
from protoforge.llm.client import GatewayClient, GatewayError
from protoforge.llm.prompts import as_messages, prompt_documentation
from protoforge.models import Outcome

logger = logging.getLogger(__name__)


def fallback_documentation(component_name: str) -> str:
    return (
        f"# {component_name}\n\n"
        f"This component provides {component_name.lower()} functionality for the prototype.\n\n"
        "## Features\n"
        "- Responsive design\n"
        "- Modern styling\n"
        "- Accessible markup\n\n"
        "## Customization\n"
        "Modify the code to adjust styling, content, and behavior as needed."
    )


async def generate_documentation(
    client: GatewayClient,
    code: str,
    component_name: str,
    preferences: GenerationPreferences,
    settings: GenerationSettings,
    retries: int | None = None,
) -> Outcome[str]:
    """Document one component; falls back to a templated text block.

    Waits ``backoff_scale * attempt`` seconds between attempts.
    """
    attempts = retries if retries is not None else settings.doc_retries
    messages = as_messages(prompt_documentation(code, component_name, preferences))
    last_error = "no attempts made"

    for attempt in range(1, attempts + 1):
        try:
            text = await client.complete(
                messages,
                stage="documentation",
                temperature=settings.doc_temperature,
                max_tokens=settings.doc_max_tokens,
            )
        except GatewayError as e:
            last_error = e.message
            logger.warning(
                "documentation_attempt_failed",
                extra={
                    "component": component_name,
                    "attempt": attempt,
                    "attempts": attempts,
                    "error_msg": e.message,
                },
            )
            if attempt < attempts:
                await asyncio.sleep(settings.backoff_scale * attempt)
            continue
        return Outcome.ok(text)

    logger.warning(
        "documentation_fallback_used",
        extra={"component": component_name, "error_msg": last_error},
    )
    return Outcome.fallback(fallback_documentation(component_name), reason=last_error)
