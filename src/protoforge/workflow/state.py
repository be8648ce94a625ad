"""Workflow state for generation and edit runs.

GenerationState drives Idle -> Planning -> Generating (one section per step)
-> Assembling -> Documenting -> Complete. ``sections``, ``degraded_sections``
and ``completed_steps`` use ``Annotated[list, operator.add]`` so each node
appends without overwriting; sections are never removed once produced.

EditState drives Classify -> Surgical edit -> (done | Regenerate).
"""

from __future__ import annotations

import operator
from typing import Annotated, Any, Literal, TypedDict

from protoforge.config import GenerationPreferences
from protoforge.edits.classifier import EditMetadata
from protoforge.edits.surgical import SurgicalEditResult
from protoforge.models import CodeSection, GenerationPlan

GenerationStatus = Literal["planning", "generating", "documenting", "complete"]
EditStatus = Literal["classified", "edited", "needs_regeneration", "regenerated"]


class GenerationState(TypedDict, total=False):
    """State passed through the generation workflow.

    Attributes:
        prompt: The user's request; empty when running a given plan.
        preferences: Generation preferences.
        plan: Plan being generated; when present at entry planning is skipped.
        plan_degraded: True when the plan is the fallback plan.
        section_index: Index of the next component to generate.
        sections: Generated sections in plan order.
        degraded_sections: Names of sections that fell back to the template.
        completed_steps: Completed steps in completion order.
        document: Assembled HTML document.
        documentation: Section id -> documentation text.
        status: Current phase.
    """

    prompt: str
    preferences: GenerationPreferences
    plan: GenerationPlan | None
    plan_degraded: bool
    section_index: int
    sections: Annotated[list[CodeSection], operator.add]
    degraded_sections: Annotated[list[str], operator.add]
    completed_steps: Annotated[list[str], operator.add]
    document: str
    documentation: dict[str, str]
    status: GenerationStatus


class EditState(TypedDict, total=False):
    """State passed through the edit workflow."""

    document: str
    instruction: str
    element_id: str | None
    prompt: str
    preferences: GenerationPreferences
    kind: str
    classification: EditMetadata
    edit_result: SurgicalEditResult | None
    generation: dict[str, Any] | None
    status: EditStatus


def build_initial_state(
    prompt: str,
    preferences: GenerationPreferences,
    plan: GenerationPlan | None = None,
) -> GenerationState:
    """Initial generation state with every key set."""
    return GenerationState(
        prompt=prompt,
        preferences=preferences,
        plan=plan,
        plan_degraded=False,
        section_index=0,
        sections=[],
        degraded_sections=[],
        completed_steps=[],
        document="",
        documentation={},
        status="planning",
    )


def build_edit_state(
    document: str,
    instruction: str,
    preferences: GenerationPreferences,
    element_id: str | None = None,
    prompt: str = "",
) -> EditState:
    return EditState(
        document=document,
        instruction=instruction,
        element_id=element_id,
        prompt=prompt,
        preferences=preferences,
        edit_result=None,
        generation=None,
    )
