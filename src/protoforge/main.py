"""ProtoForge - Main entry point."""

import argparse
import asyncio
import logging
import os
import re
import sys
import uuid
from collections.abc import Mapping
from pathlib import Path

from protoforge.config import (
    EditSettings,
    GatewaySettings,
    GenerationPreferences,
    GenerationSettings,
)
from protoforge.llm.client import GatewayClient
from protoforge.models import GenerationProgress
from protoforge.orchestrator.service import Orchestrator
from protoforge.patch.engine import generate_preview_patch
from protoforge.patch.locator import extract_editable_elements
from protoforge.utils.logger import StructuredLogger

MAX_SLUG_LENGTH = 60


def slugify(text: str) -> str:
    """Convert text to a URL-safe slug.

    Args:
        text: The text to slugify.

    Returns:
        The slugified text, or "prototype" when nothing survives.
    """
    slug = text.lower()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    slug = re.sub(r"-+", "-", slug)
    slug = slug[:MAX_SLUG_LENGTH].strip("-")
    return slug or "prototype"


def write_output(content: str, name: str, output_dir: Path, suffix: str = ".html") -> Path:
    """Write content to ``{output_dir}/{slug}{suffix}`` and return the path."""
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / f"{slugify(name)}{suffix}"
    output_path.write_text(content, encoding="utf-8")
    return output_path


class ConsoleProgressSink:
    """Prints progress snapshots to stderr."""

    def update(self, progress: GenerationProgress) -> None:
        line = f"[{progress.percentage:5.1f}%] {progress.current_step}"
        if progress.explanation:
            line += f" - {progress.explanation}"
        print(line, file=sys.stderr)


class ConsoleMarkupSink:
    def publish(self, document: str, sections: Mapping[str, str]) -> None:
        print(
            f"Assembled {len(sections)} sections ({len(document)} chars)",
            file=sys.stderr,
        )


def _preferences(args: argparse.Namespace) -> GenerationPreferences:
    return GenerationPreferences(
        output_type=args.output_type,
        framework=args.framework,
        styling=args.styling,
    )


def _orchestrator(args: argparse.Namespace, run_logger: StructuredLogger | None = None) -> Orchestrator:
    return Orchestrator(
        GatewayClient(GatewaySettings()),
        args.generation_settings,
        EditSettings(),
        progress_sink=ConsoleProgressSink(),
        markup_sink=ConsoleMarkupSink(),
        run_logger=run_logger,
    )


def _run_logger(args: argparse.Namespace) -> StructuredLogger:
    return StructuredLogger.for_run(str(uuid.uuid4()), args.output_dir)


async def cmd_generate(args: argparse.Namespace) -> int:
    orchestrator = _orchestrator(args, _run_logger(args))
    result = await orchestrator.run(args.prompt, _preferences(args))

    output_path = write_output(result.document, args.prompt, args.output_dir)
    docs = "\n\n".join(
        s.documentation for s in result.sections if s.documentation
    )
    if docs:
        write_output(docs, args.prompt, args.output_dir, suffix=".md")

    print(f"Wrote {output_path}")
    if result.plan_degraded:
        print("Warning: gateway plan unavailable, used the fallback plan", file=sys.stderr)
    for name in result.degraded_sections:
        print(f"Warning: section '{name}' used the fallback template", file=sys.stderr)
    return 0


async def cmd_edit(args: argparse.Namespace) -> int:
    document_path = Path(args.document)
    if not document_path.exists():
        print(f"Error: {document_path} not found", file=sys.stderr)
        return 1

    orchestrator = _orchestrator(args, _run_logger(args))
    outcome = await orchestrator.edit(
        document_path.read_text(encoding="utf-8"),
        args.instruction,
        _preferences(args),
        element_id=args.element,
        prompt=args.prompt,
    )

    output_path = write_output(outcome.document, document_path.stem, args.output_dir)
    if outcome.regenerated_fully:
        reason = outcome.surgical.reason if outcome.surgical else "instruction needs regeneration"
        print(f"Regenerated ({reason})", file=sys.stderr)
    else:
        patch = outcome.surgical.patch if outcome.surgical else None
        lines = patch.affected_lines if patch else []
        print(f"Surgical edit applied to {len(lines)} lines", file=sys.stderr)
    print(f"Wrote {output_path}")
    return 0


def cmd_preview(args: argparse.Namespace) -> int:
    old = Path(args.old).read_text(encoding="utf-8")
    new = Path(args.new).read_text(encoding="utf-8")
    preview = generate_preview_patch(old, new)
    stats = preview.stats
    print(
        f"additions={stats.additions} deletions={stats.deletions} "
        f"modifications={stats.modifications}"
    )
    if args.html:
        Path(args.html).write_text(preview.preview, encoding="utf-8")
        print(f"Wrote {args.html}")
    return 0


def cmd_elements(args: argparse.Namespace) -> int:
    markup = Path(args.document).read_text(encoding="utf-8")
    for element in extract_editable_elements(markup):
        content = element.content if len(element.content) <= 50 else element.content[:47] + "..."
        print(f"{element.line + 1:>5}  {element.type:<9}  {element.selector:<24}  {content}")
    return 0


async def cmd_health(args: argparse.Namespace) -> int:
    status = await GatewayClient(GatewaySettings()).health_check()
    print(f"{status['status']}: {status['details']}")
    return 0 if status["status"] == "healthy" else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="protoforge")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_generation_options(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--styling", default="tailwind", choices=["tailwind", "css", "styled-components"])
        sub.add_argument("--framework", default="vanilla", choices=["vanilla", "react", "vue"])
        sub.add_argument("--output-type", default="html-js", choices=["html-js", "react"])
        sub.add_argument("--output-dir", type=Path, default=None, help="Output folder (default: GEN_OUTPUT_DIR or ./output)")

    generate = subparsers.add_parser("generate", help="Generate a prototype from a prompt")
    generate.add_argument("prompt")
    add_generation_options(generate)

    edit = subparsers.add_parser("edit", help="Edit a generated document")
    edit.add_argument("document")
    edit.add_argument("instruction")
    edit.add_argument("--element", default=None, help="id, class or data-element of the target")
    edit.add_argument("--prompt", default="", help="Original prompt, used if regeneration is needed")
    add_generation_options(edit)

    preview = subparsers.add_parser("preview", help="Diff statistics between two files")
    preview.add_argument("old")
    preview.add_argument("new")
    preview.add_argument("--html", default=None, help="Write the highlighted diff here")

    elements = subparsers.add_parser("elements", help="List editable elements of a document")
    elements.add_argument("document")

    subparsers.add_parser("health", help="Check the LLM gateway")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for ProtoForge."""
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    args = build_parser().parse_args(argv)

    if args.command in ("generate", "edit"):
        args.generation_settings = GenerationSettings()
        if args.output_dir is None:
            args.output_dir = Path(args.generation_settings.output_dir)

    if args.command == "generate":
        return asyncio.run(cmd_generate(args))
    if args.command == "edit":
        return asyncio.run(cmd_edit(args))
    if args.command == "preview":
        return cmd_preview(args)
    if args.command == "elements":
        return cmd_elements(args)
    return asyncio.run(cmd_health(args))


if __name__ == "__main__":
    raise SystemExit(main())
