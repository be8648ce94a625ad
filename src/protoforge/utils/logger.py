"""Structured JSONL logger for generation and edit runs."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from protoforge.models import PatchResult

# Event type allowlist
EVENT_TYPE_ALLOWLIST = frozenset(
    [
        "session_created",
        "state_transition",
        "plan_generated",
        "section_generated",
        "section_degraded",
        "documentation_generated",
        "edit_classified",
        "patch_applied",
        "patch_failed",
        "session_completed",
        "error",
    ]
)

MAX_FIELD_LENGTH = 200


class StructuredLogger:
    """Run-scoped structured JSONL logger.

    Constructed explicitly per run and handed to the orchestrator or edit
    workflow; one JSON object per line, flushed on every write.
    """

    def __init__(self, run_id: str, log_path: Path) -> None:
        """Initialize logger for a run.

        Args:
            run_id: Identifier stamped on every event.
            log_path: JSONL file to append to; parent directories are created.
        """
        self.run_id = run_id
        self.log_path = log_path
        self._ensure_log_dir()

    @classmethod
    def for_run(cls, run_id: str, output_dir: Path) -> "StructuredLogger":
        """Logger writing to ``{output_dir}/logs/{run_id}.jsonl``."""
        return cls(run_id, output_dir / "logs" / f"{run_id}.jsonl")

    def _ensure_log_dir(self) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def _write_line(self, event: dict[str, Any]) -> None:
        """Write a JSON line to the log file with flush."""
        self._ensure_log_dir()
        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(event, ensure_ascii=False, default=str) + "\n")
            f.flush()

    def log_event(self, event_type: str, **kwargs: Any) -> None:
        """Log a structured event.

        Args:
            event_type: Must be in EVENT_TYPE_ALLOWLIST.
            **kwargs: Event-specific fields.
        """
        if event_type not in EVENT_TYPE_ALLOWLIST:
            raise ValueError(
                f"Invalid event_type: {event_type}. Must be in {EVENT_TYPE_ALLOWLIST}"
            )

        event = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "run_id": self.run_id,
            "event_type": event_type,
            **kwargs,
        }
        self._write_line(event)

    def log_state_transition(
        self, from_state: str, to_state: str, **kwargs: Any
    ) -> None:
        self.log_event(
            "state_transition",
            from_state=from_state,
            to_state=to_state,
            **kwargs,
        )

    def log_patch(self, result: PatchResult) -> None:
        """Log a patch result; the serialized patch itself is not recorded."""
        target = result.element_id or result.section_name
        if result.success:
            self.log_event(
                "patch_applied",
                target=target,
                affected_lines=len(result.affected_lines),
            )
        else:
            self.log_event(
                "patch_failed",
                target=target,
                error=(result.error or "")[:MAX_FIELD_LENGTH],
            )

    def log_error(self, error_type: str, message: str, **kwargs: Any) -> None:
        """Log an error occurrence."""
        self.log_event(
            "error",
            error_type=error_type,
            message=message[:MAX_FIELD_LENGTH],
            **kwargs,
        )
