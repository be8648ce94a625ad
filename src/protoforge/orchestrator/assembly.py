"""Assemble generated sections into one runnable HTML5 document."""

from __future__ import annotations

from collections.abc import Sequence

from protoforge.models import CodeSection

TAILWIND_CDN = '<script src="https://cdn.tailwindcss.com"></script>'


def _marked(section: CodeSection) -> str:
    name = section.name.upper()
    return f"<!-- {name} SECTION -->\n{section.content}\n<!-- END {name} -->"


def assemble_document(
    sections: Sequence[CodeSection], styling: str, title: str = "Prototype"
) -> str:
    """Build the document: html sections in body order, css in one <style>, js in one <script>."""
    html = [_marked(s) for s in sections if s.type == "html"]
    css = [_marked(s) for s in sections if s.type == "css"]
    js = [_marked(s) for s in sections if s.type == "js"]

    head = [
        '<meta charset="UTF-8">',
        '<meta name="viewport" content="width=device-width, initial-scale=1.0">',
        f"<title>{title}</title>",
    ]
    if styling == "tailwind":
        head.append(TAILWIND_CDN)
    if css:
        head.append("<style>\n" + "\n\n".join(css) + "\n</style>")

    body = list(html)
    if js:
        body.append("<script>\n" + "\n\n".join(js) + "\n</script>")

    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n'
        "<head>\n" + "\n".join(head) + "\n</head>\n"
        "<body>\n" + "\n\n".join(body) + "\n</body>\n"
        "</html>\n"
    )
