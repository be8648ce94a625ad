"""Edit Classifier - Routes an edit instruction to surgical patching or regeneration."""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import TypedDict


class EditKind(Enum):
    """Edit routing decision."""

    SURGICAL = "surgical"
    REGENERATE = "regenerate"


class EditMetadata(TypedDict):
    """Metadata for classified instructions."""

    surgical_matches: list[str]
    complex_matches: list[str]
    instruction: str
    timestamp: str


SURGICAL_KEYWORDS = [
    "rename", "change text", "update label", "modify title", "replace text",
    "change color", "update button text", "button text", "change heading",
    "modify placeholder", "update content", "change wording", "fix typo",
    "correct spelling", "change font", "update link", "modify alt text",
    "change class name", "update id", "change attribute", "fix spacing",
    "adjust margin", "change padding", "update border", "modify background",
]
COMPLEX_KEYWORDS = [
    "add new", "create", "build", "implement", "remove section",
    "delete component", "restructure", "reorganize", "add feature",
    "new functionality", "integrate", "connect to", "add database",
    "add api", "add authentication", "add validation",
]

# Words of a phrase must appear in order; up to two other words may sit between them
MAX_GAP_WORDS = 2


def _phrase_pattern(phrase: str) -> re.Pattern[str]:
    words = [re.escape(word) for word in phrase.split()]
    gap = rf"(?:\s+\w+){{0,{MAX_GAP_WORDS}}}?\s+"
    return re.compile(r"\b" + gap.join(words) + r"\b", re.IGNORECASE)


SURGICAL_PATTERNS = [(k, _phrase_pattern(k)) for k in SURGICAL_KEYWORDS]
COMPLEX_PATTERNS = [(k, _phrase_pattern(k)) for k in COMPLEX_KEYWORDS]


def _matches(instruction: str, patterns: list[tuple[str, re.Pattern[str]]]) -> list[str]:
    return [keyword for keyword, pattern in patterns if pattern.search(instruction)]


def is_simple_edit(instruction: str) -> bool:
    """True when the instruction names a small wording or styling change."""
    return bool(_matches(instruction, SURGICAL_PATTERNS))


def classify_edit(instruction: str) -> tuple[EditKind, EditMetadata]:
    """Classify an instruction as surgical or regenerate.

    Surgical only with at least one surgical match and no complex match;
    anything else, including an empty or unmatched instruction, regenerates.

    Args:
        instruction: Free-form edit instruction

    Returns:
        Tuple of (EditKind, EditMetadata)
    """
    surgical = _matches(instruction, SURGICAL_PATTERNS)
    complex_ = _matches(instruction, COMPLEX_PATTERNS)
    kind = EditKind.SURGICAL if surgical and not complex_ else EditKind.REGENERATE
    return (
        kind,
        EditMetadata(
            surgical_matches=surgical,
            complex_matches=complex_,
            instruction=instruction,
            timestamp=datetime.now(timezone.utc).isoformat(),
        ),
    )
