"""LangGraph workflows for prototype generation and follow-up edits.

Generation: START → plan → generate (loops once per planned component)
→ assemble → document → END. A plan already in the state skips the gateway
call. Every section is generated in its own step, so a degraded section never
stops the others.

Edit: START → classify → (surgical_edit | regenerate); surgical_edit → (END |
regenerate) → END. Regeneration re-enters the generation workflow with the
original prompt amended by the instruction.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from langgraph.graph import END, START, StateGraph

from protoforge.config import GenerationPreferences, GenerationSettings
from protoforge.edits.classifier import classify_edit
from protoforge.edits.surgical import SurgicalEditor
from protoforge.llm.client import GatewayClient
from protoforge.models import CodeSection
from protoforge.orchestrator.assembly import assemble_document
from protoforge.orchestrator.codegen import extract_code, generate_code_stream
from protoforge.orchestrator.documentation import generate_documentation
from protoforge.orchestrator.planner import generate_plan
from protoforge.orchestrator.progress import (
    ASSEMBLY_DONE,
    PLAN_DONE,
    ChunkSink,
    MarkupSink,
    NullSink,
    ProgressSink,
    ProgressTracker,
    documentation_percentage,
    section_percentage,
)
from protoforge.utils.logger import StructuredLogger
from protoforge.workflow.routing import (
    route_after_classify,
    route_after_plan,
    route_after_section,
    route_after_surgical,
)
from protoforge.workflow.state import EditState, GenerationState

logger = logging.getLogger(__name__)

Regenerate = Callable[[str, GenerationPreferences], Awaitable[GenerationState]]


def amend_prompt(prompt: str, instruction: str) -> str:
    if not prompt:
        return instruction
    return f"{prompt}\n\nAdditional changes: {instruction}"


def create_generation_workflow(
    client: GatewayClient,
    settings: GenerationSettings,
    *,
    progress_sink: ProgressSink | None = None,
    markup_sink: MarkupSink | None = None,
    chunk_sink: ChunkSink | None = None,
    run_logger: StructuredLogger | None = None,
) -> Any:
    """Build and compile the generation workflow for one run.

    Sinks default to NullSink. The compiled graph carries a fresh progress
    tracker, so compile one per run.
    """
    tracker = ProgressTracker(progress_sink)
    markup = markup_sink if markup_sink is not None else NullSink()
    chunks = chunk_sink if chunk_sink is not None else NullSink()

    def transition(from_state: str, to_state: str, **kwargs: Any) -> None:
        logger.info("state_transition", extra={"from_state": from_state, "to_state": to_state})
        if run_logger is not None:
            run_logger.log_state_transition(from_state, to_state, **kwargs)

    async def plan_node(state: GenerationState) -> dict[str, Any]:
        if state.get("plan") is not None:
            plan = state["plan"]
            tracker.estimated_minutes = plan.timeline.estimated_minutes
            tracker.advance("generating", PLAN_DONE, "Using approved plan", completed="planning")
            transition("idle", "generating", plan_id=plan.id)
            return {"completed_steps": ["planning"], "section_index": 0, "status": "generating"}

        transition("idle", "planning")
        tracker.advance("planning", 0.0, "Breaking the request into components")
        outcome = await generate_plan(client, state["prompt"], state["preferences"], settings)
        # Plans produced inside a run are approved implicitly
        plan = outcome.value.approve()
        tracker.estimated_minutes = plan.timeline.estimated_minutes
        if run_logger is not None:
            run_logger.log_event(
                "plan_generated",
                plan_id=plan.id,
                components=[c.name for c in plan.components],
                degraded=outcome.degraded,
            )
            if outcome.degraded:
                run_logger.log_error("plan_fallback", outcome.reason or "", plan_id=plan.id)
        tracker.advance(
            "generating",
            PLAN_DONE,
            f"Planned {len(plan.components)} components",
            completed="planning",
        )
        transition("planning", "generating", plan_id=plan.id)
        return {
            "plan": plan,
            "plan_degraded": outcome.degraded,
            "section_index": 0,
            "completed_steps": ["planning"],
            "status": "generating",
        }

    async def generate_node(state: GenerationState) -> dict[str, Any]:
        plan = state["plan"]
        index = state["section_index"]
        component = plan.components[index]
        total = len(plan.components)

        tracker.advance(
            f"section:{component.name}",
            section_percentage(index, total),
            f"Generating {component.name}",
        )
        stream = generate_code_stream(
            client, plan, component.name, state["preferences"], settings
        )
        async for chunk in stream:
            chunks.on_chunk(component.name, chunk)

        code, section_type = extract_code(stream.content)
        section = CodeSection(
            name=component.name,
            type=section_type,
            content=code,
            degraded=stream.degraded,
        )
        if run_logger is not None:
            run_logger.log_event(
                "section_degraded" if stream.degraded else "section_generated",
                section=component.name,
                attempts=stream.attempts,
                length=len(code),
            )
        tracker.advance(
            f"section:{component.name}",
            section_percentage(index + 1, total),
            completed=f"section:{component.name}",
        )
        return {
            "sections": [section],
            "section_index": index + 1,
            "degraded_sections": [component.name] if stream.degraded else [],
            "completed_steps": [f"section:{component.name}"],
        }

    def assemble_node(state: GenerationState) -> dict[str, Any]:
        sections = state.get("sections", [])
        plan = state.get("plan")
        title = plan.components[0].name if plan and plan.components else "Prototype"
        document = assemble_document(sections, state["preferences"].styling, title=title)
        markup.publish(document, {s.name: s.content for s in sections})
        tracker.advance("documenting", ASSEMBLY_DONE, "Assembled document", completed="assembly")
        transition("generating", "documenting", section_count=len(sections))
        return {"document": document, "completed_steps": ["assembly"], "status": "documenting"}

    async def document_node(state: GenerationState) -> dict[str, Any]:
        html_sections = [s for s in state.get("sections", []) if s.type == "html"]
        documentation: dict[str, str] = {}
        for done, section in enumerate(html_sections, start=1):
            outcome = await generate_documentation(
                client, section.content, section.name, state["preferences"], settings
            )
            documentation[section.id] = outcome.value
            if run_logger is not None:
                run_logger.log_event(
                    "documentation_generated", section=section.name, degraded=outcome.degraded
                )
            tracker.advance(
                "documenting",
                documentation_percentage(done, len(html_sections)),
                f"Documented {section.name}",
            )

        tracker.advance("complete", 100.0, "Prototype ready", completed="documentation")
        transition("documenting", "complete")
        return {
            "documentation": documentation,
            "completed_steps": ["documentation"],
            "status": "complete",
        }

    workflow = StateGraph(GenerationState)
    workflow.add_node("plan", plan_node)
    workflow.add_node("generate", generate_node)
    workflow.add_node("assemble", assemble_node)
    workflow.add_node("document", document_node)

    workflow.add_edge(START, "plan")
    workflow.add_conditional_edges(
        "plan", route_after_plan, {"generate": "generate", "assemble": "assemble"}
    )
    workflow.add_conditional_edges(
        "generate", route_after_section, {"generate": "generate", "assemble": "assemble"}
    )
    workflow.add_edge("assemble", "document")
    workflow.add_edge("document", END)
    return workflow.compile()


def create_edit_workflow(
    editor: SurgicalEditor,
    regenerate: Regenerate,
    *,
    run_logger: StructuredLogger | None = None,
) -> Any:
    """Build and compile the edit workflow.

    Args:
        editor: Surgical editor used on the surgical path.
        regenerate: Runs a full generation for an amended prompt and returns
            the final generation state.
        run_logger: Optional run log.
    """

    def classify_node(state: EditState) -> dict[str, Any]:
        kind, metadata = classify_edit(state["instruction"])
        logger.info(
            "edit_classified",
            extra={"kind": kind.value, "surgical_matches": metadata["surgical_matches"]},
        )
        if run_logger is not None:
            run_logger.log_event(
                "edit_classified",
                kind=kind.value,
                surgical_matches=metadata["surgical_matches"],
                complex_matches=metadata["complex_matches"],
            )
        return {"kind": kind.value, "classification": metadata, "status": "classified"}

    async def surgical_edit_node(state: EditState) -> dict[str, Any]:
        result = await editor.edit(
            state["document"], state["instruction"], state.get("element_id")
        )
        if run_logger is not None and result.patch is not None:
            run_logger.log_patch(result.patch)
        if result.success:
            return {"edit_result": result, "document": result.updated_content, "status": "edited"}
        logger.info("surgical_edit_fallback", extra={"reason": result.reason})
        return {"edit_result": result, "status": "needs_regeneration"}

    async def regenerate_node(state: EditState) -> dict[str, Any]:
        prompt = amend_prompt(state.get("prompt", ""), state["instruction"])
        final = await regenerate(prompt, state["preferences"])
        return {"document": final["document"], "generation": dict(final), "status": "regenerated"}

    workflow = StateGraph(EditState)
    workflow.add_node("classify", classify_node)
    workflow.add_node("surgical_edit", surgical_edit_node)
    workflow.add_node("regenerate", regenerate_node)

    workflow.add_edge(START, "classify")
    workflow.add_conditional_edges(
        "classify",
        route_after_classify,
        {"surgical_edit": "surgical_edit", "regenerate": "regenerate"},
    )
    workflow.add_conditional_edges(
        "surgical_edit", route_after_surgical, {"done": END, "regenerate": "regenerate"}
    )
    workflow.add_edge("regenerate", END)
    return workflow.compile()
