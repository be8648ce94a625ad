"""Routing functions for the generation and edit workflows."""

from __future__ import annotations

from protoforge.edits.classifier import EditKind
from protoforge.workflow.state import EditState, GenerationState


def route_after_plan(state: GenerationState) -> str:
    """Route after planning: generate | assemble (plan without components)."""
    plan = state.get("plan")
    if plan is not None and plan.components:
        return "generate"
    return "assemble"


def route_after_section(state: GenerationState) -> str:
    """Route after one section: generate the next one or assemble.

    Returns:
        One of: "generate", "assemble"
    """
    plan = state.get("plan")
    if plan is not None and state.get("section_index", 0) < len(plan.components):
        return "generate"
    return "assemble"


def route_after_classify(state: EditState) -> str:
    if state.get("kind") == EditKind.SURGICAL.value:
        return "surgical_edit"
    return "regenerate"


def route_after_surgical(state: EditState) -> str:
    """Route after a surgical attempt: done | regenerate."""
    result = state.get("edit_result")
    if result is not None and result.success:
        return "done"
    return "regenerate"
