"""Collaborator sinks and progress tracking for a generation run.

Progress bands: planning ends at 10%, sections fill 10-80%, assembly sits at
85%, documentation fills 85-100%. Percentages never move backwards.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from protoforge.models import GenerationProgress

PLAN_DONE = 10.0
SECTIONS_DONE = 80.0
ASSEMBLY_DONE = 85.0


@runtime_checkable
class ProgressSink(Protocol):
    def update(self, progress: GenerationProgress) -> None: ...


@runtime_checkable
class MarkupSink(Protocol):
    def publish(self, document: str, sections: Mapping[str, str]) -> None: ...


@runtime_checkable
class ChunkSink(Protocol):
    def on_chunk(self, section_name: str, chunk: str) -> None: ...


class NullSink:
    """Discards everything; stands in for any missing collaborator."""

    def update(self, progress: GenerationProgress) -> None:
        pass

    def publish(self, document: str, sections: Mapping[str, str]) -> None:
        pass

    def on_chunk(self, section_name: str, chunk: str) -> None:
        pass


def section_percentage(done: int, total: int) -> float:
    if total <= 0:
        return SECTIONS_DONE
    return PLAN_DONE + (SECTIONS_DONE - PLAN_DONE) * done / total


def documentation_percentage(done: int, total: int) -> float:
    if total <= 0:
        return 100.0
    return ASSEMBLY_DONE + (100.0 - ASSEMBLY_DONE) * done / total


class ProgressTracker:
    """Accumulates completed steps and pushes snapshots to a progress sink."""

    def __init__(self, sink: ProgressSink | None = None, estimated_minutes: int = 5) -> None:
        self._sink = sink if sink is not None else NullSink()
        self.estimated_minutes = estimated_minutes
        self.completed_steps: list[str] = []
        self.percentage = 0.0

    def eta_seconds(self) -> int:
        return max(0, round(self.estimated_minutes * 60 * (1 - self.percentage / 100)))

    def advance(
        self,
        current_step: str,
        percentage: float,
        explanation: str | None = None,
        completed: str | None = None,
    ) -> GenerationProgress:
        """Record progress; ``completed`` is appended to the completed steps."""
        if completed is not None and completed not in self.completed_steps:
            self.completed_steps.append(completed)
        self.percentage = max(self.percentage, min(100.0, max(0.0, percentage)))
        progress = GenerationProgress(
            current_step=current_step,
            completed_steps=list(self.completed_steps),
            percentage=self.percentage,
            estimated_time_remaining=self.eta_seconds(),
            explanation=explanation,
        )
        self._sink.update(progress)
        return progress
