"""Line-based element locator and editable element discovery.

This is a best-effort text scan, not an HTML parser. An element starts on the
first line carrying the identifier as an ``id``, ``class`` or ``data-element``
attribute value. Its end is found by counting opening and closing forms of the
tag named first on that line, from the start line on, until the count returns
to zero. Elements whose tags do not appear in those literal forms, or whose
nested same-name tags share lines unusually, can be mis-located.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

TAG_PATTERN = re.compile(r"<(\w+)")
SECTION_MARKER = re.compile(r"<!--\s*(.+?)\s+SECTION\s*-->")

EDITABLE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"<h[1-6][^>]*>(.*?)</h[1-6]>"), "heading"),
    (re.compile(r"<p(?:\s[^>]*)?>(.*?)</p>"), "paragraph"),
    (re.compile(r"<button[^>]*>(.*?)</button>"), "button"),
    (re.compile(r"<a(?:\s[^>]*)?>(.*?)</a>"), "link"),
    (re.compile(r"<img[^>]*>"), "image"),
    (re.compile(r"""<div[^>]*class=["'][^"']*card[^"']*["']"""), "card"),
]


@dataclass(frozen=True)
class ElementLocation:
    start_line: int
    end_line: int
    tag: str | None = None

    @property
    def lines(self) -> range:
        return range(self.start_line, self.end_line + 1)


@dataclass(frozen=True)
class EditableElement:
    id: str
    selector: str
    type: str
    content: str
    section: str
    line: int


def identifier_pattern(element_id: str) -> re.Pattern[str]:
    return re.compile(
        r"(?<![\w-])(?:id|class|data-element)=([\"'])" + re.escape(element_id) + r"\1"
    )


def find_end_line(lines: list[str], start_line: int) -> int:
    """First line at or after ``start_line`` where the start tag's depth is zero."""
    tag_match = TAG_PATTERN.search(lines[start_line])
    if tag_match is None:
        return start_line
    tag = re.escape(tag_match.group(1))
    opening = re.compile(rf"<{tag}(?:\s|>)")
    closing = re.compile(rf"</{tag}>")

    depth = 0
    for i in range(start_line, len(lines)):
        depth += len(opening.findall(lines[i])) - len(closing.findall(lines[i]))
        if depth == 0:
            return i
    return start_line


def locate_element(markup: str, element_id: str) -> ElementLocation | None:
    """Find the line span owned by ``element_id``; None when absent."""
    lines = markup.split("\n")
    pattern = identifier_pattern(element_id)
    for i, line in enumerate(lines):
        if pattern.search(line):
            tag_match = TAG_PATTERN.search(line)
            return ElementLocation(
                start_line=i,
                end_line=find_end_line(lines, i),
                tag=tag_match.group(1) if tag_match else None,
            )
    return None


def css_selector(line: str) -> str:
    id_match = re.search(r"""id=["']([^"']+)["']""", line)
    if id_match:
        return f"#{id_match.group(1)}"
    class_match = re.search(r"""class=["']([^"']+)["']""", line)
    if class_match:
        return "." + class_match.group(1).split()[0]
    tag_match = TAG_PATTERN.search(line)
    return tag_match.group(1) if tag_match else "div"


def section_for_line(lines: list[str], line_index: int) -> str:
    """Name of the nearest section marker at or above the line."""
    for i in range(line_index, -1, -1):
        marker = SECTION_MARKER.search(lines[i])
        if marker:
            return marker.group(1).lower()
    return "main"


def extract_editable_elements(markup: str) -> list[EditableElement]:
    """List headings, paragraphs, buttons, links, images and cards, line by line."""
    lines = markup.split("\n")
    elements = []
    for i, line in enumerate(lines):
        for pattern, kind in EDITABLE_PATTERNS:
            match = pattern.search(line)
            if match is None:
                continue
            content = match.group(1) if match.groups() else match.group(0)
            elements.append(
                EditableElement(
                    id=f"{kind}-{i}",
                    selector=css_selector(line),
                    type=kind,
                    content=content,
                    section=section_for_line(lines, i),
                    line=i,
                )
            )
    return elements
