# =============================================================================
# src/cli/process.py -- CLI Process Command
# =============================================================================
#
# Runs one or more poster images through the extraction pipeline from the
# command line and prints what was read off each poster:
#
#   python -m src.cli.process poster.jpg                   # text report
#   python -m src.cli.process a.jpg b.png --json            # JSON to stdout
#   python -m src.cli.process poster.jpg --consensus anthropic,openai
#
# Several images are processed as a batch (sequentially, with the configured
# delay between images) and reported with a batch summary.
#
# The --quiet flag (auto-enabled with --json) sends logs to stderr at
# WARNING+ so stdout carries only the results.
# =============================================================================

"""Command-line front end for :class:`src.pipeline.orchestrator.IterativeProcessor`.

Usage::

    python -m src.cli.process /path/to/poster.jpg
    python -m src.cli.process a.jpg b.jpg --json --output results.json
    python -m src.cli.process poster.jpg --consensus anthropic,openai
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from src.models.consensus import ConsensusOptions
from src.models.pipeline import IterativeBatchResult, IterativeProcessingResult, ProcessingOptions

# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def _format_result(result: IterativeProcessingResult) -> list[str]:
    lines = [f"{result.image_path}"]
    if not result.success:
        lines.append(f"  FAILED: {result.error}")
        return lines

    entity = result.entity
    if entity is None:
        return lines
    lines.append(f"  Poster ID:   {result.poster_id}")
    lines.append(f"  Type:        {entity.poster_type.value}")
    for label, value in (
        ("Title", entity.title),
        ("Headliner", entity.headliner),
        ("Support", ", ".join(entity.supporting_acts)),
        ("Director", entity.director),
        ("Cast", ", ".join(entity.cast)),
        ("Venue", entity.venue_name),
        ("City", ", ".join(p for p in (entity.city, entity.state, entity.country) if p)),
        ("Date", entity.event_date),
        ("Label", entity.record_label),
        ("Price", entity.ticket_price),
    ):
        if value:
            lines.append(f"  {label + ':':<12} {value}")
    lines.append(f"  Confidence:  {result.overall_confidence:.0%}")
    if result.agreement_score is not None:
        lines.append(f"  Agreement:   {result.agreement_score:.0%} ({', '.join(result.models_used)})")
    if result.fields_needing_review:
        lines.append(f"  Review:      {', '.join(result.fields_needing_review)}")

    assembly = result.phases.assembly
    if assembly is not None:
        new = sum(1 for e in assembly.entities_created if e.is_new)
        lines.append(
            f"  Graph:       {len(assembly.entities_created)} entities ({new} new), "
            f"{len(assembly.relationships_created)} relations"
        )
    return lines


def _format_text_output(results: list[IterativeProcessingResult], batch: IterativeBatchResult | None) -> str:
    sep = "=" * 60
    lines: list[str] = [sep, "  posterGraph — Extraction Report", sep, ""]
    for result in results:
        lines.extend(_format_result(result))
        lines.append("")
    if batch is not None:
        s = batch.summary
        lines.append(f"Batch {batch.job_id}: {s.successful}/{s.total} succeeded, "
                     f"{s.needs_review} need review, average confidence {s.average_confidence:.0%}")
    return "\n".join(lines)


def _format_json_output(results: list[IterativeProcessingResult], batch: IterativeBatchResult | None) -> str:
    if batch is not None:
        return batch.model_dump_json(indent=2)
    return json.dumps(results[0].model_dump(mode="json"), indent=2, ensure_ascii=False)


def _suppress_logs() -> None:
    """Send structlog and stdlib logging to stderr at WARNING+.

    Must run before ``src.main`` is imported, since that import configures
    logging and structlog caches loggers on first use.
    """
    import logging
    import os

    import structlog

    os.environ["LOG_LEVEL"] = "WARNING"
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
    root = logging.getLogger()
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logging.WARNING)
    root.addHandler(handler)
    root.setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_options(args: argparse.Namespace) -> ProcessingOptions:
    """Translate parsed arguments into :class:`ProcessingOptions`."""
    consensus = None
    if args.consensus:
        models = [m.strip() for m in args.consensus.split(",") if m.strip()]
        consensus = ConsensusOptions(
            enabled=True,
            models=models,
            parallel=not args.sequential,
        )
    return ProcessingOptions(
        model_key=args.model,
        skip_storage=args.skip_storage,
        skip_enrichment=args.skip_enrichment,
        skip_review=args.skip_review,
        consensus=consensus,
    )


async def _run(args: argparse.Namespace) -> int:
    # Deferred so --quiet can reconfigure logging before src.main configures it.
    import httpx

    from src.main import build_processor

    options = build_options(args)
    async with httpx.AsyncClient(timeout=30.0) as http_client:
        processor = build_processor(http_client=http_client)
        batch: IterativeBatchResult | None = None
        if len(args.images) == 1:
            results = [await processor.process_image(args.images[0], options)]
        else:
            batch = await processor.process_batch(args.images, options)
            results = batch.results

    text = _format_json_output(results, batch) if args.json_output else _format_text_output(results, batch)
    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
        print(f"Results written to: {args.output}", file=sys.stderr)
    else:
        print(text)
    return 0 if all(r.success for r in results) else 1


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.process",
        description="Extract structured, graph-linked records from poster images.",
    )
    parser.add_argument("images", nargs="+", help="Poster image paths (JPEG, PNG, WEBP, GIF).")
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Output results as JSON instead of formatted text.",
    )
    parser.add_argument(
        "--consensus",
        type=str,
        default=None,
        metavar="MODELS",
        help="Comma-separated model keys to vote across, e.g. anthropic,openai.",
    )
    parser.add_argument("--sequential", action="store_true", help="Query consensus models one at a time.")
    parser.add_argument("--model", type=str, default=None, help="Vision model key for the phases.")
    parser.add_argument("--skip-storage", action="store_true", help="Build the graph ledger without writing.")
    parser.add_argument("--skip-enrichment", action="store_true", help="Do not consult reference catalogs.")
    parser.add_argument("--skip-review", action="store_true", help="Do not run the self-review step.")
    parser.add_argument("--output", "-o", type=str, default=None, help="Write results to a file.")
    parser.add_argument("--quiet", "-q", action="store_true", help="Suppress log output.")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, configure logging and run the pipeline."""
    args = _build_parser().parse_args(argv)
    if args.quiet or args.json_output:
        _suppress_logs()
    sys.exit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
