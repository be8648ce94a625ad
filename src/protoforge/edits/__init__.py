"""Edit classification and surgical editing."""

from protoforge.edits.classifier import EditKind, EditMetadata, classify_edit
from protoforge.edits.surgical import SurgicalEditor, SurgicalEditResult

__all__ = [
    "EditKind",
    "EditMetadata",
    "SurgicalEditResult",
    "SurgicalEditor",
    "classify_edit",
]
