"""LLM-backed surgical editor.

Asks the gateway for a minimal edit of one element (or of the whole document),
guards the answer, and applies it through the patch engine. Any rejection
resolves to ``requires_regeneration`` so the caller can fall back to a full
generation pass instead of showing a half-edited document.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from protoforge.config import EditSettings
from protoforge.edits.classifier import is_simple_edit
from protoforge.llm.client import GatewayClient, GatewayError
from protoforge.llm.prompts import as_messages, prompt_surgical_edit
from protoforge.models import PatchResult
from protoforge.patch.diff import DiffTag, compute_diff
from protoforge.patch.engine import apply_element_patch, apply_section_patch
from protoforge.patch.locator import locate_element

logger = logging.getLogger(__name__)

FENCE_LINE = re.compile(r"```[\w-]*\n?")
FULL_DOCUMENT = re.compile(r"<(?:!DOCTYPE html|html[^>]*>)[\s\S]*</html>", re.IGNORECASE)

NEW_TEXT_PATTERN = re.compile(r"""\b(?:to|with)\s*['"](.*?)['"]|\b(?:to|with)\s+(.+?)(?:\.|$)""", re.IGNORECASE)
NEW_COLOR_PATTERN = re.compile(r"\b(?:to|with)\s+([a-zA-Z]+|#[0-9a-fA-F]{3,6})", re.IGNORECASE)
NEW_CLASS_PATTERN = re.compile(r"""\b(?:to|with)\s*['"](.*?)['"]|\b(?:to|with)\s+([a-zA-Z0-9\s-]+)""", re.IGNORECASE)


@dataclass
class SurgicalEditResult:
    """Outcome of one surgical edit attempt."""

    success: bool
    updated_content: str | None = None
    patch: PatchResult | None = None
    requires_regeneration: bool = False
    used_basic_replacement: bool = False
    reason: str | None = None

    @classmethod
    def regenerate(cls, reason: str, patch: PatchResult | None = None) -> SurgicalEditResult:
        return cls(success=False, requires_regeneration=True, reason=reason, patch=patch)


def clean_generated_code(code: str) -> str:
    """Strip markdown fences and any prose around a full document."""
    cleaned = FENCE_LINE.sub("", code.strip())
    document = FULL_DOCUMENT.search(cleaned)
    if document:
        cleaned = document.group(0)
    return cleaned.strip()


def basic_text_replacement(original: str, instruction: str) -> str:
    """Deterministic edit for "change text", "color" and "class" instructions.

    Returns the original unchanged when no pattern applies.
    """
    lower = instruction.lower()

    if "change text" in lower or "update text" in lower:
        match = NEW_TEXT_PATTERN.search(instruction)
        if match:
            new_text = match.group(1) or match.group(2)
            return re.sub(
                r">([^<]+)<",
                lambda m: f">{new_text}<" if m.group(1).strip() else m.group(0),
                original,
            )

    if "color" in lower:
        match = NEW_COLOR_PATTERN.search(instruction)
        if match:
            return re.sub(r"color:\s*[^;]+", f"color: {match.group(1)}", original, flags=re.IGNORECASE)

    if "class" in lower:
        match = NEW_CLASS_PATTERN.search(instruction)
        if match:
            new_class = (match.group(1) or match.group(2)).strip()
            return re.sub(r'class="[^"]*"', f'class="{new_class}"', original, flags=re.IGNORECASE)

    logger.info("basic_replacement_no_pattern", extra={"instruction": instruction[:100]})
    return original


def changed_line_ratio(original: str, updated: str) -> float:
    """Share of the original's lines touched by the edit."""
    total = max(len(original.split("\n")), 1)
    deleted = inserted = 0
    for op in compute_diff(original, updated):
        count = len(op.text.splitlines())
        if op.tag is DiffTag.DELETE:
            deleted += count
        elif op.tag is DiffTag.INSERT:
            inserted += count
    return max(deleted, inserted) / total


class SurgicalEditor:
    """Applies minimal LLM edits through the patch engine."""

    def __init__(self, client: GatewayClient, settings: EditSettings) -> None:
        self._client = client
        self._settings = settings

    async def propose(self, original: str, instruction: str) -> tuple[str, bool]:
        """Ask the gateway for the edited code.

        Returns:
            (edited_code, used_basic_replacement)
        """
        messages = as_messages(prompt_surgical_edit(original, instruction))
        try:
            response = await self._client.complete(messages, stage="surgical_edit")
        except GatewayError as e:
            logger.warning("surgical_edit_llm_failed", extra={"error_msg": e.message})
            return basic_text_replacement(original, instruction), True

        edited = clean_generated_code(response)
        if "<" not in edited or len(edited) < len(original) * self._settings.min_length_ratio:
            logger.warning(
                "surgical_edit_output_rejected",
                extra={"original_length": len(original), "edited_length": len(edited)},
            )
            return basic_text_replacement(original, instruction), True
        return edited, False

    def validate(self, original: str, updated: str, instruction: str) -> str | None:
        """Reason the whole-document edit is too broad, or None when acceptable."""
        ratio = changed_line_ratio(original, updated)
        if ratio > self._settings.max_change_ratio:
            return f"Edit changed {ratio:.0%} of the code"
        if is_simple_edit(instruction) and ratio > self._settings.simple_edit_change_ratio:
            return f"Simple edit changed {ratio:.0%} of the code"
        return None

    async def edit(
        self, document: str, instruction: str, element_id: str | None = None
    ) -> SurgicalEditResult:
        if element_id is not None:
            location = locate_element(document, element_id)
            if location is None:
                return SurgicalEditResult.regenerate(f"Element {element_id} not found")
            lines = document.split("\n")
            original = "\n".join(lines[location.start_line:location.end_line + 1])
        else:
            original = document

        edited, used_basic = await self.propose(original, instruction)
        if edited == original:
            return SurgicalEditResult.regenerate("Edit produced no change")

        if element_id is None:
            rejection = self.validate(original, edited, instruction)
            if rejection:
                logger.info("surgical_edit_rejected", extra={"reason": rejection})
                return SurgicalEditResult.regenerate(rejection)
            patch = apply_section_patch("document", document, edited)
        else:
            patch = apply_element_patch(element_id, original, edited, document)

        if not patch.success:
            return SurgicalEditResult.regenerate(patch.error or "Patch failed", patch=patch)

        return SurgicalEditResult(
            success=True,
            updated_content=patch.updated_content,
            patch=patch,
            used_basic_replacement=used_basic,
        )
