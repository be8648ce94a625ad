"""Plan phase: request, extract, validate and map a generation plan.

The gateway answers with free text that should contain one JSON object in the
shape of PLAN_SCHEMA. Transport failures and unusable answers are retried with
exponential backoff (2^attempt seconds); once retries are exhausted a fixed,
schema-valid fallback plan is returned instead of an error.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

import jsonschema

from protoforge.config import GenerationPreferences, GenerationSettings
from protoforge.llm.client import GatewayClient, GatewayError, MalformedResponseError
from protoforge.llm.prompts import as_messages, prompt_plan
from protoforge.models import (
    ArchitecturePlan,
    ComponentPlan,
    GenerationPlan,
    Outcome,
    TimelineEstimate,
)

logger = logging.getLogger(__name__)

PLAN_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["id", "components", "architecture", "timeline"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "components": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["id", "name"],
                "properties": {
                    "id": {"type": "string", "minLength": 1},
                    "name": {"type": "string", "minLength": 1},
                    "type": {"type": "string"},
                    "description": {"type": "string"},
                    "features": {"type": "array", "items": {"type": "string"}},
                    "estimatedComplexity": {"enum": ["low", "medium", "high"]},
                },
            },
        },
        "architecture": {
            "type": "object",
            "properties": {
                "structure": {"type": "string"},
                "styling": {"type": "string"},
                "interactions": {"type": "string"},
                "responsive": {"type": "boolean"},
            },
        },
        "timeline": {
            "type": "object",
            "properties": {
                "totalMinutes": {"type": "number", "minimum": 0},
                "phases": {"type": ["object", "array"]},
            },
        },
        "dependencies": {"type": "array", "items": {"type": "string"}},
    },
}

# Substring -> domain type, checked in order
COMPONENT_TYPE_RULES: list[tuple[tuple[str, ...], str]] = [
    (("header", "footer", "nav", "layout"), "layout"),
    (("form", "button", "card", "component"), "component"),
    (("hero", "features", "feature"), "feature"),
]


def extract_json_object(text: str, stage: str = "plan") -> dict[str, Any]:
    """Return the first JSON object embedded in ``text``.

    Raises:
        MalformedResponseError: No decodable object was found, or the object
            uses a non-finite constant (NaN, Infinity).
    """

    def reject_constant(name: str) -> float:
        raise MalformedResponseError(stage, f"Non-finite number {name} in response")

    decoder = json.JSONDecoder(parse_constant=reject_constant)
    start = text.find("{")
    while start != -1:
        try:
            obj, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(obj, dict):
            return obj
        start = text.find("{", start + 1)
    raise MalformedResponseError(stage, "No JSON found in response")


def map_component_type(wire_type: str) -> str:
    lower = wire_type.lower()
    for needles, domain_type in COMPONENT_TYPE_RULES:
        if any(needle in lower for needle in needles):
            return domain_type
    return "utility"


def plan_from_payload(payload: dict[str, Any]) -> GenerationPlan:
    """Map a schema-valid gateway plan onto the domain plan."""
    architecture = payload.get("architecture", {})
    timeline = payload.get("timeline", {})
    phases = timeline.get("phases", {})
    phase_names = list(phases.keys()) if isinstance(phases, dict) else [str(p) for p in phases]

    return GenerationPlan(
        id=payload["id"],
        components=tuple(
            ComponentPlan(
                id=component["id"],
                name=component["name"],
                type=map_component_type(component.get("type", "")),
                description=component.get("description", ""),
                features=tuple(component.get("features", [])),
                estimated_complexity=component.get("estimatedComplexity", "medium"),
            )
            for component in payload["components"]
        ),
        architecture=ArchitecturePlan(
            structure=architecture.get("structure", ""),
            styling=architecture.get("styling", ""),
            interactions=architecture.get("interactions", ""),
            responsive=architecture.get("responsive", True),
        ),
        timeline=TimelineEstimate(
            estimated_minutes=round(timeline.get("totalMinutes", 5)),
            phases=tuple(phase_names),
        ),
        dependencies=tuple(payload.get("dependencies", [])),
    )


def parse_plan_response(content: str) -> GenerationPlan:
    """Extract, validate and map the plan in a gateway answer.

    Raises:
        MalformedResponseError: No JSON object, one that fails PLAN_SCHEMA, or
            one whose values cannot be mapped onto the domain plan.
    """
    payload = extract_json_object(content)
    try:
        jsonschema.validate(payload, PLAN_SCHEMA)
    except jsonschema.ValidationError as e:
        raise MalformedResponseError("plan", f"Invalid plan structure: {e.message}") from e
    try:
        return plan_from_payload(payload)
    except (KeyError, TypeError, ValueError, OverflowError) as e:
        # pydantic.ValidationError is a ValueError
        raise MalformedResponseError("plan", f"Unusable plan values: {e}") from e


def fallback_plan_payload() -> dict[str, Any]:
    """The fixed plan used when the gateway cannot produce one."""
    return {
        "id": f"plan-{int(time.time() * 1000)}",
        "components": [
            {
                "id": "header",
                "name": "Header Navigation",
                "type": "header",
                "description": "Responsive navigation header",
                "features": ["Logo", "Navigation menu", "Mobile hamburger"],
                "estimatedComplexity": "medium",
            },
            {
                "id": "main-content",
                "name": "Main Content",
                "type": "custom",
                "description": "Primary content area",
                "features": ["Content sections", "Responsive layout"],
                "estimatedComplexity": "medium",
            },
        ],
        "architecture": {
            "structure": "Semantic HTML5 with proper sectioning",
            "styling": "TailwindCSS utility classes",
            "interactions": "Vanilla JavaScript for basic interactions",
            "responsive": True,
        },
        "timeline": {
            "totalMinutes": 5,
            "phases": {"planning": 1, "generation": 3, "documentation": 1},
        },
        "dependencies": ["tailwindcss"],
    }


def fallback_plan() -> GenerationPlan:
    return plan_from_payload(fallback_plan_payload())


async def generate_plan(
    client: GatewayClient,
    prompt: str,
    preferences: GenerationPreferences,
    settings: GenerationSettings,
    retries: int | None = None,
) -> Outcome[GenerationPlan]:
    """Plan a prototype; always yields a usable plan.

    Args:
        client: Gateway client.
        prompt: The user's request.
        preferences: Generation preferences.
        settings: Retry and backoff settings.
        retries: Total attempts; defaults to ``settings.plan_retries``.

    Returns:
        Outcome wrapping the parsed plan, or the fallback plan marked degraded.
    """
    attempts = retries if retries is not None else settings.plan_retries
    messages = as_messages(prompt_plan(prompt, preferences))
    last_error = "no attempts made"

    for attempt in range(1, attempts + 1):
        try:
            content = await client.complete(messages, stage="plan")
            plan = parse_plan_response(content)
        except GatewayError as e:
            last_error = e.message
            logger.warning(
                "plan_attempt_failed",
                extra={"attempt": attempt, "attempts": attempts, "error_msg": e.message},
            )
            if attempt < attempts:
                await asyncio.sleep(settings.backoff_scale * 2**attempt)
            continue

        logger.info(
            "plan_generated",
            extra={"plan_id": plan.id, "component_count": len(plan.components)},
        )
        return Outcome.ok(plan)

    logger.warning("plan_fallback_used", extra={"error_msg": last_error})
    return Outcome.fallback(fallback_plan(), reason=last_error)
