"""Utilities: structured run logging."""

from protoforge.utils.logger import EVENT_TYPE_ALLOWLIST, StructuredLogger

__all__ = ["EVENT_TYPE_ALLOWLIST", "StructuredLogger"]
