"""Generation orchestrator: plan, per-section code, documentation, assembly.

The Orchestrator facade lives in protoforge.orchestrator.service.
"""

from protoforge.orchestrator.assembly import assemble_document
from protoforge.orchestrator.codegen import (
    SectionStream,
    extract_code,
    fallback_section_code,
    generate_code_stream,
)
from protoforge.orchestrator.documentation import (
    fallback_documentation,
    generate_documentation,
)
from protoforge.orchestrator.planner import (
    PLAN_SCHEMA,
    fallback_plan,
    generate_plan,
    parse_plan_response,
)
from protoforge.orchestrator.progress import NullSink, ProgressTracker

__all__ = [
    "NullSink",
    "PLAN_SCHEMA",
    "ProgressTracker",
    "SectionStream",
    "assemble_document",
    "extract_code",
    "fallback_documentation",
    "fallback_plan",
    "fallback_section_code",
    "generate_code_stream",
    "generate_documentation",
    "generate_plan",
    "parse_plan_response",
]
