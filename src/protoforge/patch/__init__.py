"""Element locator, diff codec and patch engine."""

from protoforge.patch.diff import (
    DiffOp,
    DiffTag,
    Hunk,
    PatchFormatError,
    apply_patches,
    compute_diff,
    make_patches,
    patches_from_text,
    patches_to_text,
)
from protoforge.patch.engine import (
    apply_element_patch,
    apply_multiple_patches,
    apply_section_patch,
    create_element_patch,
    generate_preview_patch,
)
from protoforge.patch.locator import (
    EditableElement,
    ElementLocation,
    extract_editable_elements,
    locate_element,
)

__all__ = [
    "DiffOp",
    "DiffTag",
    "EditableElement",
    "ElementLocation",
    "Hunk",
    "PatchFormatError",
    "apply_element_patch",
    "apply_multiple_patches",
    "apply_patches",
    "apply_section_patch",
    "compute_diff",
    "create_element_patch",
    "extract_editable_elements",
    "generate_preview_patch",
    "locate_element",
    "make_patches",
    "patches_from_text",
    "patches_to_text",
]
