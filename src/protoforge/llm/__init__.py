"""Streaming LLM client and prompt builders."""

from protoforge.llm.client import (
    GatewayClient,
    GatewayError,
    HealthStatus,
    MalformedResponseError,
    TransportError,
)
from protoforge.llm.prompts import (
    as_messages,
    prompt_documentation,
    prompt_plan,
    prompt_section,
    prompt_surgical_edit,
)
from protoforge.llm.stream import Frame, TokenStream, decode_frame

__all__ = [
    "Frame",
    "GatewayClient",
    "GatewayError",
    "HealthStatus",
    "MalformedResponseError",
    "TokenStream",
    "TransportError",
    "as_messages",
    "decode_frame",
    "prompt_documentation",
    "prompt_plan",
    "prompt_section",
    "prompt_surgical_edit",
]
