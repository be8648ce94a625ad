"""Patch engine entry points.

Every entry point reports failure through its return value; none raise for a
missing element, a stale patch or unparseable patch text. Callers serialize
access to a given document themselves.

``affected_lines`` are 0-based indices into the content the patch was applied
to, taken before the patch.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from protoforge.models import (
    CodeSection,
    ElementPatch,
    MultiPatchResult,
    PatchPreview,
    PatchResult,
    PreviewStats,
)
from protoforge.patch.diff import (
    DiffTag,
    Hunk,
    PatchFormatError,
    apply_patches,
    compute_diff,
    make_patches,
    patches_from_text,
    patches_to_text,
    pretty_html,
)
from protoforge.patch.locator import locate_element

logger = logging.getLogger(__name__)


def _hunk_lines(content: str, hunks: Sequence[Hunk]) -> list[int]:
    lines: list[int] = []
    for hunk in hunks:
        first = content.count("\n", 0, hunk.start1)
        end = hunk.start1 + max(len(hunk.source_text) - 1, 0)
        last = content.count("\n", 0, end)
        lines.extend(i for i in range(first, last + 1) if i not in lines)
    return lines


def apply_element_patch(
    element_id: str, old_content: str, new_content: str, full_document: str
) -> PatchResult:
    """Patch one element of a document, located by id, class or data-element."""
    hunks = make_patches(old_content, new_content)
    patch_text = patches_to_text(hunks)

    location = locate_element(full_document, element_id)
    if location is None:
        logger.info("patch_failed", extra={"element_id": element_id, "reason": "not_found"})
        return PatchResult(
            success=False,
            element_id=element_id,
            error=f"Element {element_id} not found in document",
        )

    lines = full_document.split("\n")
    element_text = "\n".join(lines[location.start_line:location.end_line + 1])
    if element_text == new_content and new_content != old_content:
        logger.info(
            "patch_already_applied", extra={"element_id": element_id, "tag": location.tag}
        )
        return PatchResult(
            success=True,
            updated_content=full_document,
            patches=patch_text,
            affected_lines=list(location.lines),
            element_id=element_id,
        )

    patched, results = apply_patches(hunks, element_text)
    if not all(results):
        logger.info(
            "patch_failed",
            extra={
                "element_id": element_id,
                "tag": location.tag,
                "reason": "apply",
                "hunks": len(results),
            },
        )
        return PatchResult(
            success=False,
            patches=patch_text,
            element_id=element_id,
            error=f"Patch did not apply cleanly to element {element_id}",
        )

    updated = "\n".join(
        lines[:location.start_line] + patched.split("\n") + lines[location.end_line + 1:]
    )
    logger.info(
        "patch_applied",
        extra={
            "element_id": element_id,
            "tag": location.tag,
            "start_line": location.start_line,
            "end_line": location.end_line,
        },
    )
    return PatchResult(
        success=True,
        updated_content=updated,
        patches=patch_text,
        affected_lines=list(location.lines),
        element_id=element_id,
    )


def apply_section_patch(
    section_name: str, old_section: CodeSection | str, new_content: str
) -> PatchResult:
    """Patch a section's stored content. All hunks apply or the call fails.

    On failure no content is returned; partial output is never exposed.
    """
    old_content = old_section.content if isinstance(old_section, CodeSection) else old_section
    hunks = make_patches(old_content, new_content)
    patched, results = apply_patches(hunks, old_content)

    if not all(results):
        logger.info("patch_failed", extra={"section": section_name, "reason": "apply"})
        return PatchResult(
            success=False,
            section_name=section_name,
            error="Section patch failed: some hunks did not apply",
        )

    logger.info("patch_applied", extra={"section": section_name, "hunks": len(hunks)})
    return PatchResult(
        success=True,
        updated_content=patched,
        patches=patches_to_text(hunks),
        affected_lines=_hunk_lines(old_content, hunks),
        section_name=section_name,
    )


def create_element_patch(
    element_selector: str, old_content: str, new_content: str
) -> ElementPatch:
    return ElementPatch(
        element_selector=element_selector,
        patch_data=patches_to_text(make_patches(old_content, new_content)),
        old_content=old_content,
        new_content=new_content,
    )


def _occurrences(text: str, needle: str) -> list[int]:
    if not needle:
        return [0] if not text else []
    found = []
    pos = text.find(needle)
    while pos != -1:
        found.append(pos)
        pos = text.find(needle, pos + 1)
    return found


def _free_occurrence(content: str, old: str, new: str) -> int | None:
    """First occurrence of ``old`` not lying inside an occurrence of ``new``."""
    covers = [(start, start + len(new)) for start in _occurrences(content, new)]
    for start in _occurrences(content, old):
        end = start + len(old)
        if not any(lo <= start and end <= hi for lo, hi in covers):
            return start
    return None


def _apply_record(content: str, patch: ElementPatch) -> str | None:
    """Content with one record applied, or None when it does not apply.

    The record's hunks run against the first copy of its old content that is
    not already part of its new content. With no such copy, content that
    already holds the new content is returned unchanged.
    """
    hunks = patches_from_text(patch.patch_data)
    start = _free_occurrence(content, patch.old_content, patch.new_content)
    if start is None:
        return content if _occurrences(content, patch.new_content) else None

    end = start + len(patch.old_content)
    patched, results = apply_patches(hunks, content[start:end])
    if not all(results):
        return None
    return content[:start] + patched + content[end:]


def apply_multiple_patches(
    base_content: str, patches: Sequence[ElementPatch]
) -> MultiPatchResult:
    """Apply recorded element patches in order against the evolving content.

    A patch that fails is skipped and reported by selector; the rest still run.
    Reapplying a record whose new content is already in place changes nothing.
    """
    content = base_content
    errors: list[str] = []

    for patch in patches:
        try:
            patched = _apply_record(content, patch)
        except PatchFormatError as e:
            errors.append(f"Error applying patch for {patch.element_selector}: {e}")
            continue

        if patched is None:
            errors.append(f"Failed to apply patch for {patch.element_selector}")
        else:
            content = patched

    if errors:
        logger.info(
            "patch_batch_partial",
            extra={"patch_count": len(patches), "error_count": len(errors)},
        )
    return MultiPatchResult(success=not errors, content=content, errors=errors)


def generate_preview_patch(old_content: str, new_content: str) -> PatchPreview:
    """Highlighted diff plus line statistics.

    Lines are counted as newlines inside each operation's text. Matching
    additions and deletions are reported as modifications.
    """
    ops = compute_diff(old_content, new_content)
    additions = sum(op.text.count("\n") for op in ops if op.tag is DiffTag.INSERT)
    deletions = sum(op.text.count("\n") for op in ops if op.tag is DiffTag.DELETE)

    modifications = 0
    if additions and deletions:
        modifications = min(additions, deletions)
        additions -= modifications
        deletions -= modifications

    return PatchPreview(
        preview=pretty_html(ops),
        stats=PreviewStats(
            additions=additions, deletions=deletions, modifications=modifications
        ),
    )
