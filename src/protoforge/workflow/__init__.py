"""Generation and edit workflows."""

from protoforge.workflow.graph import (
    amend_prompt,
    create_edit_workflow,
    create_generation_workflow,
)
from protoforge.workflow.state import (
    EditState,
    GenerationState,
    build_edit_state,
    build_initial_state,
)

__all__ = [
    "EditState",
    "GenerationState",
    "amend_prompt",
    "build_edit_state",
    "build_initial_state",
    "create_edit_workflow",
    "create_generation_workflow",
]
