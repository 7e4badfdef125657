"""
deckctl - CLI for deckforge.

Commands:
    templates  List, search and rank library templates
    recommend  Rank templates for a free-text request
    draft      Draft an outline for a topic (calls the LLM)
    adapt      Conform an outline JSON file to a template
    expand     Expand an outline (optionally adapted) into full slides (calls the LLM)
    register   Register a template from a .pptx or snapshot .json document
    feedback   Record a rating for a template

Exit codes: 0 success, 1 fatal error, 2 usage error.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, List, Optional

import logging

from deckforge.config import load_config
from deckforge.errors import DeckforgeError
from deckforge.logging_utils import setup_logging
from deckforge.models import (
    Outline,
    PresentationContext,
    Purpose,
    SelectionPreferences,
    TargetAudience,
    TemplateCategory,
    TemplateInfo,
)
from deckforge.outline import renumber, validate_outline
from deckforge.regions import open_document
from deckforge.service import DeckService

logger = logging.getLogger(__name__)

# ANSI color helpers (auto-disabled for non-TTY)
_USE_COLOR = sys.stdout.isatty()


def _c(code: str, text: str) -> str:
    if not _USE_COLOR:
        return text
    return f"\033[{code}m{text}\033[0m"


def _bold(text: str) -> str:
    return _c("1", text)


def _green(text: str) -> str:
    return _c("32", text)


def _yellow(text: str) -> str:
    return _c("33", text)


def _red(text: str) -> str:
    return _c("31", text)


def _cyan(text: str) -> str:
    return _c("36", text)


def _dim(text: str) -> str:
    return _c("2", text)


class UsageError(Exception):
    """Bad input file or argument combination (exit code 2)."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _service(args: argparse.Namespace) -> DeckService:
    config = load_config(Path(args.config) if args.config else None)
    if getattr(args, "backend", None):
        config.llm.backend = args.backend
    if getattr(args, "model", None):
        config.llm.model = args.model
    if args.store:
        config.storage.path = args.store
    return DeckService(config)


def _load_outline(path: str) -> Outline:
    """Read an outline JSON file; misnumbered slides are renumbered."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        outline = Outline.from_dict(data)
    except FileNotFoundError as e:
        raise UsageError(f"Outline not found: {path}") from e
    except (json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as e:
        raise UsageError(f"Unreadable outline {path}: {e}") from e

    issues = validate_outline(outline)
    if any("numbered" in issue for issue in issues):
        logger.warning(f"Renumbering slides of {path}")
        outline = Outline(outline.title, renumber(outline.slides), outline.estimated_duration)
    if not outline.slides:
        raise UsageError(f"Outline {path} has no slides")
    return outline


def _write(payload: Any, output: Optional[str]) -> None:
    text = json.dumps(payload, ensure_ascii=False, indent=2)
    if output:
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        Path(output).write_text(text + "\n", encoding="utf-8")
        print(_green(f"Written: {output}"))
    else:
        print(text)


def _template_line(template: TemplateInfo, service: DeckService) -> str:
    meta = template.metadata
    usage = service.library.usage_for(template.id)
    used = usage.usage_count if usage else meta.usage_count
    rating = f", rated {usage.average_rating:.1f}" if usage and usage.average_rating else ""
    return (
        f"  {_cyan(template.id):<30} {_bold(template.name)} "
        f"{_dim(f'[{template.category.value}, {meta.purpose.value}, {meta.slide_count} slides, used {used}x{rating}]')}"
    )


def _progress(current: int, total: int, label: str) -> None:
    print(f"  [{_cyan(f'{current}/{total}')}] {label}", flush=True)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_templates(args: argparse.Namespace) -> int:
    """List or search templates."""
    service = _service(args)
    library = service.library

    if args.stats:
        _write(library.statistics(), None)
        return 0

    if args.popular:
        templates = library.popular(args.popular)
        heading = f"Most used templates (top {args.popular})"
    elif args.recent:
        templates = library.recent(args.recent)
        heading = f"Recently used templates (last {args.recent})"
    else:
        categories = [TemplateCategory(args.category)] if args.category else None
        purpose = Purpose(args.purpose) if args.purpose else None
        templates = library.search(args.query or "", categories, args.industry, purpose)
        heading = f"Templates ({len(templates)} of {len(library)})"

    if args.json:
        _write([t.to_dict() for t in templates], None)
        return 0

    print(_bold(heading))
    if not templates:
        print(_dim("  (none)"))
    for template in templates:
        print(_template_line(template, service))
    return 0


def cmd_recommend(args: argparse.Namespace) -> int:
    """Rank templates for a request."""
    service = _service(args)
    context = PresentationContext(
        audience=TargetAudience(args.audience) if args.audience else None,
        purpose=Purpose(args.purpose) if args.purpose else None,
    )
    preferences = SelectionPreferences(
        categories=[TemplateCategory(c) for c in args.category] or None,
        exclude_categories=[TemplateCategory(c) for c in args.exclude] or None,
        minimum_score=args.min_score,
        max_results=args.max_results,
    )
    recommendations = service.recommend(args.text, context, preferences)

    if args.json:
        _write([r.to_dict() for r in recommendations], None)
        return 0

    if not recommendations:
        print(_yellow("No template matches this request"))
        return 0

    print(_bold("Recommended templates"))
    for rank, rec in enumerate(recommendations, start=1):
        marker = _yellow(" (default)") if rec.is_fallback else ""
        print(f"  {rank}. {_cyan(rec.template.id)} {_bold(f'{rec.score:.2f}')}{marker}  {rec.template.name}")
        for reason in rec.reasoning:
            print(f"       {_dim('- ' + reason)}")
    return 0


def cmd_draft(args: argparse.Namespace) -> int:
    """Draft an outline through the LLM."""
    service = _service(args)
    if args.revise:
        current = _load_outline(args.revise)
        outline = asyncio.run(service.redraft(current, args.topic))
    else:
        outline = asyncio.run(service.draft(args.topic, args.slides))
    print(_bold(f"Outline: {outline.title}") + _dim(f" ({len(outline.slides)} slides)"), file=sys.stderr)
    _write(outline.to_dict(), args.output)
    return 0


def cmd_adapt(args: argparse.Namespace) -> int:
    """Conform an outline to a template."""
    service = _service(args)
    outline = _load_outline(args.outline)
    adapted = service.adapt(outline, args.template)

    for adaptation in adapted.adaptations:
        print(f"  {_yellow(adaptation.type.value)}: {adaptation.description}", file=sys.stderr)
    print(_dim(f"Confidence: {adapted.confidence:.2f}"), file=sys.stderr)
    _write(adapted.to_dict(), args.output)
    return 0


def cmd_expand(args: argparse.Namespace) -> int:
    """Expand every slide of an outline."""
    service = _service(args)
    outline = _load_outline(args.outline)
    source = service.adapt(outline, args.template) if args.template else outline

    print(_bold(f"Expanding '{outline.title}'") + _dim(f" ({len(outline.slides)} slides)"), file=sys.stderr)
    report = asyncio.run(service.expand(source, on_progress=None if args.quiet else _progress))

    if report.errors:
        print(_yellow(f"{len(report.errors)} slide(s) degraded, {report.fallback_count} fallback(s)"),
              file=sys.stderr)
        for error in report.errors:
            print(_dim(f"  slide {error.slide_index + 1} [{error.stage}] {error.message}"), file=sys.stderr)
    _write(report.to_dict(), args.output)
    return 0


def cmd_register(args: argparse.Namespace) -> int:
    """Register a template from an existing document."""
    service = _service(args)
    try:
        reader = open_document(args.source)
    except FileNotFoundError as e:
        raise UsageError(f"Document not found: {args.source}") from e

    metadata = json.loads(args.metadata) if args.metadata else None
    template, analysis = asyncio.run(service.register_template(
        reader,
        name=args.name,
        description=args.description,
        category=TemplateCategory(args.category),
        metadata=metadata,
        limit=args.limit,
    ))

    print(_green(f"Registered {template.id}") + f" ({template.name})")
    for note in analysis.analysis_notes:
        print(f"  {_dim(note)}")
    print(f"  Confidence: {_bold(f'{analysis.confidence:.2f}')}")
    return 0


def cmd_feedback(args: argparse.Namespace) -> int:
    """Record feedback for a template."""
    service = _service(args)
    stats = service.feedback(args.template_id, args.rating, args.comment, args.success)
    success = f", success rate {stats.success_rate:.1f}" if stats.success_rate is not None else ""
    print(_green(f"{args.template_id}: average rating {stats.average_rating:.2f} "
                 f"over {stats.rating_count} rating(s){success}"))
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """Build the deckctl argument parser."""
    parser = argparse.ArgumentParser(
        prog="deckctl",
        description="deckforge: template-aware slide drafting, adaptation and expansion",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("-c", "--config", help="Path to deckforge.yaml (default: search upward)")
    parser.add_argument("--store", help="Template store JSON file (default: storage.path)")

    sub = parser.add_subparsers(dest="command", help="Available commands")
    categories = [c.value for c in TemplateCategory]
    purposes = [p.value for p in Purpose]

    # --- templates ---
    p_tpl = sub.add_parser("templates", help="List, search and rank templates")
    p_tpl.add_argument("query", nargs="?", help="Substring to search in name, description and tags")
    p_tpl.add_argument("--category", choices=categories, help="Filter by category")
    p_tpl.add_argument("--industry", help="Filter by industry")
    p_tpl.add_argument("--purpose", choices=purposes, help="Filter by purpose")
    p_tpl.add_argument("--popular", type=int, metavar="N", help="Show the N most used templates")
    p_tpl.add_argument("--recent", type=int, metavar="N", help="Show the N most recently used templates")
    p_tpl.add_argument("--stats", action="store_true", help="Print library statistics")
    p_tpl.add_argument("--json", action="store_true", help="JSON output")
    p_tpl.set_defaults(func=cmd_templates)

    # --- recommend ---
    p_rec = sub.add_parser("recommend", help="Rank templates for a request")
    p_rec.add_argument("text", help="Free-text description of the presentation")
    p_rec.add_argument("--category", action="append", default=[], choices=categories,
                       help="Only consider this category (repeatable)")
    p_rec.add_argument("--exclude", action="append", default=[], choices=categories,
                       help="Exclude this category (repeatable)")
    p_rec.add_argument("--audience", choices=[a.value for a in TargetAudience],
                       help="Override the detected audience")
    p_rec.add_argument("--purpose", choices=purposes, help="Override the detected purpose")
    p_rec.add_argument("--min-score", type=float, default=None, help="Minimum score (default: config)")
    p_rec.add_argument("--max-results", type=int, default=None, help="Maximum results (default: config)")
    p_rec.add_argument("--json", action="store_true", help="JSON output")
    p_rec.set_defaults(func=cmd_recommend)

    # --- draft ---
    p_draft = sub.add_parser("draft", help="Draft an outline for a topic")
    p_draft.add_argument("topic", help="Presentation topic or request")
    p_draft.add_argument("--slides", type=int, default=None, help="Desired slide count")
    p_draft.add_argument("--revise", metavar="OUTLINE", help="Revise an existing outline; TOPIC is the instruction")
    p_draft.add_argument("-o", "--output", help="Output JSON file (default: stdout)")
    p_draft.add_argument("--backend", choices=["openai", "ollama"], help="LLM backend override")
    p_draft.add_argument("--model", help="LLM model override")
    p_draft.set_defaults(func=cmd_draft)

    # --- adapt ---
    p_adapt = sub.add_parser("adapt", help="Conform an outline to a template")
    p_adapt.add_argument("outline", help="Outline JSON file")
    p_adapt.add_argument("-t", "--template", required=True, help="Template id")
    p_adapt.add_argument("-o", "--output", help="Output JSON file (default: stdout)")
    p_adapt.set_defaults(func=cmd_adapt)

    # --- expand ---
    p_exp = sub.add_parser("expand", help="Expand an outline into detailed slides")
    p_exp.add_argument("outline", help="Outline JSON file")
    p_exp.add_argument("-t", "--template", help="Adapt to this template first")
    p_exp.add_argument("-o", "--output", help="Output JSON file (default: stdout)")
    p_exp.add_argument("-q", "--quiet", action="store_true", help="No progress lines")
    p_exp.add_argument("--backend", choices=["openai", "ollama"], help="LLM backend override")
    p_exp.add_argument("--model", help="LLM model override")
    p_exp.set_defaults(func=cmd_expand)

    # --- register ---
    p_reg = sub.add_parser("register", help="Register a template from a document")
    p_reg.add_argument("source", help=".pptx file or slide snapshot .json")
    p_reg.add_argument("-n", "--name", required=True, help="Template name")
    p_reg.add_argument("--description", default="", help="Template description")
    p_reg.add_argument("--category", default="custom", choices=categories, help="Category (default: custom)")
    p_reg.add_argument("--metadata", help="JSON object of metadata overrides")
    p_reg.add_argument("--limit", type=int, default=None, help="Analyse only the first N slides")
    p_reg.set_defaults(func=cmd_register)

    # --- feedback ---
    p_fb = sub.add_parser("feedback", help="Record feedback for a template")
    p_fb.add_argument("template_id", help="Template id")
    p_fb.add_argument("-r", "--rating", type=float, required=True, help="Rating from 1 to 5")
    p_fb.add_argument("--comment", help="Free-text feedback")
    outcome = p_fb.add_mutually_exclusive_group()
    outcome.add_argument("--success", dest="success", action="store_true", default=None,
                         help="The generated document was usable")
    outcome.add_argument("--failure", dest="success", action="store_false", default=None,
                         help="The generated document was not usable")
    p_fb.set_defaults(func=cmd_feedback)

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for deckctl."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging("DEBUG" if args.verbose else "WARNING")

    if not args.command:
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except UsageError as e:
        print(_red(f"Error: {e}"), file=sys.stderr)
        return 2
    except (json.JSONDecodeError, ValueError) as e:
        print(_red(f"Invalid argument: {e}"), file=sys.stderr)
        return 2
    except (DeckforgeError, OSError) as e:
        print(_red(f"Error: {e}"), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
