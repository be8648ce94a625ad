"""Orchestrator facade over the generation and edit workflows."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any

from protoforge.config import EditSettings, GenerationPreferences, GenerationSettings
from protoforge.edits.classifier import EditKind, EditMetadata
from protoforge.edits.surgical import SurgicalEditor, SurgicalEditResult
from protoforge.llm.client import GatewayClient, HealthStatus
from protoforge.models import CodeSection, GenerationPlan, Outcome
from protoforge.orchestrator.planner import generate_plan
from protoforge.orchestrator.progress import ChunkSink, MarkupSink, ProgressSink
from protoforge.utils.logger import StructuredLogger
from protoforge.workflow.graph import create_edit_workflow, create_generation_workflow
from protoforge.workflow.state import GenerationState, build_edit_state, build_initial_state

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """Final artifact of one generation run."""

    plan: GenerationPlan
    document: str
    sections: list[CodeSection]
    plan_degraded: bool = False
    degraded_sections: list[str] = field(default_factory=list)
    completed_steps: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.plan_degraded or bool(self.degraded_sections)


@dataclass
class EditOutcome:
    """Final artifact of one edit request."""

    kind: EditKind
    document: str
    classification: EditMetadata
    surgical: SurgicalEditResult | None = None
    regenerated: GenerationResult | None = None

    @property
    def regenerated_fully(self) -> bool:
        return self.regenerated is not None


def _result_from_state(state: GenerationState) -> GenerationResult:
    documentation = state.get("documentation", {})
    sections = [
        dataclasses.replace(s, documentation=documentation.get(s.id, s.documentation))
        for s in state.get("sections", [])
    ]
    return GenerationResult(
        plan=state["plan"],
        document=state.get("document", ""),
        sections=sections,
        plan_degraded=state.get("plan_degraded", False),
        degraded_sections=list(state.get("degraded_sections", [])),
        completed_steps=list(state.get("completed_steps", [])),
    )


class Orchestrator:
    """Drives plan, per-section generation, documentation and edits.

    Every collaborator is passed in; nothing is shared across instances.
    """

    def __init__(
        self,
        client: GatewayClient,
        settings: GenerationSettings,
        edit_settings: EditSettings | None = None,
        *,
        progress_sink: ProgressSink | None = None,
        markup_sink: MarkupSink | None = None,
        chunk_sink: ChunkSink | None = None,
        run_logger: StructuredLogger | None = None,
    ) -> None:
        self._client = client
        self._settings = settings
        self._editor = SurgicalEditor(client, edit_settings or EditSettings())
        self._sinks: dict[str, Any] = {
            "progress_sink": progress_sink,
            "markup_sink": markup_sink,
            "chunk_sink": chunk_sink,
        }
        self._run_logger = run_logger

    async def plan(
        self, prompt: str, preferences: GenerationPreferences
    ) -> Outcome[GenerationPlan]:
        """Plan only; the caller approves (or modifies) before :meth:`run_plan`."""
        return await generate_plan(self._client, prompt, preferences, self._settings)

    @staticmethod
    def modify_plan(plan: GenerationPlan, **changes: Any) -> GenerationPlan:
        """The explicit modification action for a plan."""
        return plan.with_modifications(**changes)

    async def run(self, prompt: str, preferences: GenerationPreferences) -> GenerationResult:
        """Plan, generate every section, assemble and document."""
        if self._run_logger is not None:
            self._run_logger.log_event("session_created", prompt=prompt[:200])
        return await self._invoke(build_initial_state(prompt, preferences))

    async def run_plan(
        self,
        plan: GenerationPlan,
        preferences: GenerationPreferences,
        prompt: str = "",
    ) -> GenerationResult:
        """Generate from an approved plan.

        Raises:
            ValueError: The plan has not been approved.
        """
        if not plan.approved:
            raise ValueError(f"Plan {plan.id} must be approved before generation")
        return await self._invoke(build_initial_state(prompt, preferences, plan=plan))

    async def _invoke(self, state: GenerationState) -> GenerationResult:
        graph = create_generation_workflow(
            self._client, self._settings, run_logger=self._run_logger, **self._sinks
        )
        final = await graph.ainvoke(
            state, config={"recursion_limit": self._settings.workflow_recursion_limit}
        )
        result = _result_from_state(final)
        logger.info(
            "generation_complete",
            extra={
                "plan_id": result.plan.id,
                "section_count": len(result.sections),
                "degraded": result.degraded,
            },
        )
        if self._run_logger is not None:
            self._run_logger.log_event(
                "session_completed",
                plan_id=result.plan.id,
                sections=len(result.sections),
                degraded_sections=result.degraded_sections,
            )
        return result

    async def _regenerate(
        self, prompt: str, preferences: GenerationPreferences
    ) -> GenerationState:
        graph = create_generation_workflow(
            self._client, self._settings, run_logger=self._run_logger, **self._sinks
        )
        return await graph.ainvoke(
            build_initial_state(prompt, preferences),
            config={"recursion_limit": self._settings.workflow_recursion_limit},
        )

    async def edit(
        self,
        document: str,
        instruction: str,
        preferences: GenerationPreferences,
        element_id: str | None = None,
        prompt: str = "",
    ) -> EditOutcome:
        """Apply an edit surgically when possible, else regenerate."""
        graph = create_edit_workflow(
            self._editor, self._regenerate, run_logger=self._run_logger
        )
        final = await graph.ainvoke(
            build_edit_state(document, instruction, preferences, element_id, prompt),
            config={"recursion_limit": self._settings.workflow_recursion_limit},
        )
        generation = final.get("generation")
        return EditOutcome(
            kind=EditKind(final["kind"]),
            document=final["document"],
            classification=final["classification"],
            surgical=final.get("edit_result"),
            regenerated=_result_from_state(generation) if generation else None,
        )

    async def health_check(self) -> HealthStatus:
        return await self._client.health_check()
