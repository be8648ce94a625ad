"""Diff primitive and patch-set codec.

Diffs are computed line by line with difflib and grouped into hunks carrying a
little surrounding context. A hunk records where it started in the old text
(``start1``) and in the new text (``start2``) as character offsets.

Patch-set text format, one hunk after another::

    @@ -start1,length1 +start2,length2 @@
     equal text
    -deleted text
    +inserted text

Op text is percent-encoded so newlines and ``%`` survive on one line.

Applying is exact, never fuzzy. A hunk whose source text (old side) sits at
its expected offset is replaced there. Otherwise the nearest occurrence of the
source and of the target text (new side) are looked up around that offset; a
closer target means the hunk is already applied and is skipped, a closer
source is replaced, nothing found is a failed hunk.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from enum import Enum
from urllib.parse import quote, unquote

CONTEXT_LINES = 2

HEADER_PATTERN = re.compile(r"^@@ -(\d+),(\d+) \+(\d+),(\d+) @@$")

# Printable ASCII kept readable; % and control characters are encoded
SAFE_CHARS = " !\"#$&'()*+,/:;<=>?@[\\]^`{|}"


class PatchFormatError(ValueError):
    """Patch-set text that cannot be parsed."""


class DiffTag(Enum):
    INSERT = "insert"
    DELETE = "delete"
    EQUAL = "equal"


PREFIXES = {DiffTag.EQUAL: " ", DiffTag.DELETE: "-", DiffTag.INSERT: "+"}
TAGS_BY_PREFIX = {prefix: tag for tag, prefix in PREFIXES.items()}


@dataclass(frozen=True)
class DiffOp:
    tag: DiffTag
    text: str


@dataclass
class Hunk:
    start1: int
    start2: int
    ops: list[DiffOp] = field(default_factory=list)

    @property
    def source_text(self) -> str:
        return "".join(op.text for op in self.ops if op.tag is not DiffTag.INSERT)

    @property
    def target_text(self) -> str:
        return "".join(op.text for op in self.ops if op.tag is not DiffTag.DELETE)


def _append(ops: list[DiffOp], tag: DiffTag, text: str) -> None:
    if not text:
        return
    if ops and ops[-1].tag is tag:
        ops[-1] = DiffOp(tag, ops[-1].text + text)
    else:
        ops.append(DiffOp(tag, text))


def compute_diff(old: str, new: str) -> list[DiffOp]:
    """Ordered insert/delete/equal operations turning ``old`` into ``new``."""
    a = old.splitlines(keepends=True)
    b = new.splitlines(keepends=True)
    matcher = SequenceMatcher(None, a, b, autojunk=False)

    ops: list[DiffOp] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            _append(ops, DiffTag.EQUAL, "".join(a[i1:i2]))
        else:
            # 'replace' becomes delete then insert
            _append(ops, DiffTag.DELETE, "".join(a[i1:i2]))
            _append(ops, DiffTag.INSERT, "".join(b[j1:j2]))
    return ops


def make_patches(old: str, new: str, context: int = CONTEXT_LINES) -> list[Hunk]:
    """Group the diff of (old, new) into hunks with ``context`` lines around changes."""
    entries = [
        (op.tag, line)
        for op in compute_diff(old, new)
        for line in op.text.splitlines(keepends=True)
    ]
    changed = [i for i, (tag, _) in enumerate(entries) if tag is not DiffTag.EQUAL]
    if not changed:
        return []

    groups: list[tuple[int, int]] = []
    first = last = changed[0]
    for i in changed[1:]:
        if i - last - 1 <= 2 * context:
            last = i
        else:
            groups.append((first, last))
            first = last = i
    groups.append((first, last))

    # Offsets of each entry in the old and new text
    offsets: list[tuple[int, int]] = []
    pos1 = pos2 = 0
    for tag, line in entries:
        offsets.append((pos1, pos2))
        if tag is not DiffTag.INSERT:
            pos1 += len(line)
        if tag is not DiffTag.DELETE:
            pos2 += len(line)

    hunks = []
    for first, last in groups:
        lo = max(0, first - context)
        hi = min(len(entries), last + context + 1)
        hunk = Hunk(start1=offsets[lo][0], start2=offsets[lo][1])
        for tag, line in entries[lo:hi]:
            _append(hunk.ops, tag, line)
        hunks.append(hunk)
    return hunks


def patches_to_text(hunks: list[Hunk]) -> str:
    lines = []
    for hunk in hunks:
        lines.append(
            f"@@ -{hunk.start1},{len(hunk.source_text)} "
            f"+{hunk.start2},{len(hunk.target_text)} @@"
        )
        for op in hunk.ops:
            lines.append(PREFIXES[op.tag] + quote(op.text, safe=SAFE_CHARS))
    return "".join(line + "\n" for line in lines)


def patches_from_text(text: str) -> list[Hunk]:
    """Parse patch-set text produced by :func:`patches_to_text`.

    Raises:
        PatchFormatError: Unknown line, op outside a hunk, or a hunk whose
            declared lengths disagree with its ops.
    """
    hunks: list[Hunk] = []
    declared: list[tuple[int, int]] = []

    for number, line in enumerate(text.split("\n"), start=1):
        if not line:
            continue
        header = HEADER_PATTERN.match(line)
        if header:
            start1, length1, start2, length2 = map(int, header.groups())
            hunks.append(Hunk(start1=start1, start2=start2))
            declared.append((length1, length2))
            continue
        tag = TAGS_BY_PREFIX.get(line[0])
        if tag is None:
            raise PatchFormatError(f"Invalid patch line {number}: {line[:40]!r}")
        if not hunks:
            raise PatchFormatError(f"Operation before any hunk header on line {number}")
        _append(hunks[-1].ops, tag, unquote(line[1:]))

    for hunk, (length1, length2) in zip(hunks, declared):
        if len(hunk.source_text) != length1 or len(hunk.target_text) != length2:
            raise PatchFormatError(
                f"Hunk at {hunk.start1} declares lengths {length1},{length2}; "
                f"ops give {len(hunk.source_text)},{len(hunk.target_text)}"
            )
    return hunks


def _nearest(text: str, needle: str, expected: int) -> int | None:
    if not needle:
        return 0 if not text else None
    best = None
    pos = text.find(needle)
    while pos != -1:
        if best is None or abs(pos - expected) < abs(best - expected):
            best = pos
        pos = text.find(needle, pos + 1)
    return best


def _sits_at(text: str, needle: str, position: int) -> bool:
    if not needle:
        return not text
    return 0 <= position <= len(text) - len(needle) and text.startswith(needle, position)


def apply_patches(hunks: list[Hunk], text: str) -> tuple[str, list[bool]]:
    """Apply hunks in order; returns (new_text, per-hunk success flags).

    A source sitting exactly at its expected offset is always replaced, so the
    hunks of (old, new) turn ``old`` into ``new``. Otherwise a target found
    there, or nearer than any moved copy of the source, marks the hunk already
    applied: a success that leaves the text as is. Whole-patch reapplication
    is detected by the callers, which know the full old and new content.
    """
    results: list[bool] = []
    delta = 0
    for hunk in hunks:
        source, target = hunk.source_text, hunk.target_text
        expected = hunk.start1 + delta

        if _sits_at(text, source, expected):
            text = text[:expected] + target + text[expected + len(source):]
            delta += len(target) - len(source)
            results.append(True)
            continue
        if _sits_at(text, target, expected):
            delta += len(target) - len(source)
            results.append(True)
            continue

        at_source = _nearest(text, source, expected)
        at_target = _nearest(text, target, expected)

        if at_source is None and at_target is None:
            results.append(False)
            continue

        # Tie on distance goes to the longer needle; the shorter one is its prefix
        applied = at_source is None or (
            at_target is not None
            and (abs(at_target - expected), -len(target))
            <= (abs(at_source - expected), -len(source))
        )
        if applied:
            found = at_target
        else:
            found = at_source
            text = text[:found] + target + text[found + len(source):]
        delta += (found - expected) + len(target) - len(source)
        results.append(True)
    return text, results


def pretty_html(ops: list[DiffOp]) -> str:
    """Highlighted HTML rendering of a diff."""
    parts = []
    for op in ops:
        text = html.escape(op.text, quote=False).replace("\n", "&para;<br>")
        if op.tag is DiffTag.INSERT:
            parts.append(f'<ins style="background:#e6ffe6;">{text}</ins>')
        elif op.tag is DiffTag.DELETE:
            parts.append(f'<del style="background:#ffe6e6;">{text}</del>')
        else:
            parts.append(f"<span>{text}</span>")
    return "".join(parts)
