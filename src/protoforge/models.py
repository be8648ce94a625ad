"""Data model shared by the orchestrator, patch engine and edit workflow.

Plans are pydantic models (they cross the gateway boundary and must validate);
sections, progress and patch records are plain dataclasses.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

ComponentType = Literal["layout", "component", "feature", "utility"]
Complexity = Literal["low", "medium", "high"]
SectionType = Literal["html", "css", "js"]

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ComponentPlan(BaseModel):
    """One planned component; each becomes one generated section."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: ComponentType = "component"
    description: str = ""
    features: tuple[str, ...] = ()
    estimated_complexity: Complexity = "medium"


class ArchitecturePlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    structure: str = ""
    styling: str = ""
    interactions: str = ""
    responsive: bool = True


class TimelineEstimate(BaseModel):
    model_config = ConfigDict(frozen=True)

    estimated_minutes: int = 5
    phases: tuple[str, ...] = ()


class GenerationPlan(BaseModel):
    """Structured breakdown of a generation request.

    Frozen: once approved, components and architecture change only through
    :meth:`with_modifications`, which returns a new plan.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    components: tuple[ComponentPlan, ...]
    architecture: ArchitecturePlan
    timeline: TimelineEstimate
    dependencies: tuple[str, ...] = ()
    approved: bool = False
    created_at: datetime = Field(default_factory=_utcnow)

    def approve(self) -> GenerationPlan:
        return self.model_copy(update={"approved": True})

    def with_modifications(self, **changes: Any) -> GenerationPlan:
        """Explicit modification action; validates the changed fields."""
        data = self.model_dump()
        data.update(changes)
        return GenerationPlan.model_validate(data)

    def component_named(self, name: str) -> ComponentPlan | None:
        for component in self.components:
            if component.name == name:
                return component
        return None


@dataclass
class GenerationProgress:
    """Snapshot pushed to the progress sink."""

    current_step: str
    completed_steps: list[str] = field(default_factory=list)
    percentage: float = 0.0
    estimated_time_remaining: int = 0
    explanation: str | None = None


@dataclass
class CodeSection:
    """A named, typed chunk of generated output."""

    name: str
    type: SectionType
    content: str
    documentation: str | None = None
    degraded: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class ElementPatch:
    """Serialized surgical edit of one element."""

    element_selector: str
    patch_data: str
    old_content: str
    new_content: str
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass
class PatchResult:
    """Returned (never raised) by every patch engine entry point."""

    success: bool
    updated_content: str | None = None
    patches: str | None = None
    affected_lines: list[int] = field(default_factory=list)
    element_id: str | None = None
    section_name: str | None = None
    error: str | None = None


@dataclass
class MultiPatchResult:
    success: bool
    content: str
    errors: list[str] = field(default_factory=list)


@dataclass
class PreviewStats:
    additions: int = 0
    deletions: int = 0
    modifications: int = 0


@dataclass
class PatchPreview:
    preview: str
    stats: PreviewStats


@dataclass
class Outcome(Generic[T]):
    """Tagged result: a genuine answer, or a degraded safe substitute."""

    value: T
    degraded: bool = False
    reason: str | None = None

    @classmethod
    def ok(cls, value: T) -> Outcome[T]:
        return cls(value=value)

    @classmethod
    def fallback(cls, value: T, reason: str) -> Outcome[T]:
        return cls(value=value, degraded=True, reason=reason)
