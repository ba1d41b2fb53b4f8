"""CLI entrypoints for patternwiz commands."""

from __future__ import annotations

import argparse
import signal
import sys
from pathlib import Path
from types import FrameType
from typing import Callable

from .cancellation import CancellationToken
from .config import OUTPUT_FORMATS, ConfigError
from .errors import AnalysisCancelled, PatternWizError
from .logging import configure_logging, get_logger
from .pipeline import AnalysisOutcome, AnalysisPipeline, resolve_categories

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def _add_logging_options(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS if suppress_default else False,
        help="Increase log verbosity for troubleshooting.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=argparse.SUPPRESS if suppress_default else None,
        help="Also append debug-level logs to this file.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="patternwiz",
        description="Detect technologies, patterns, and gaps in a project tree.",
    )
    _add_logging_options(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Analyze a project and write analysis data and reports.",
    )
    _add_logging_options(analyze_parser, suppress_default=True)
    analyze_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )
    analyze_parser.add_argument(
        "--quick",
        action="store_true",
        help="Skip interactive context questions and use configured defaults.",
    )
    analyze_parser.add_argument(
        "--context-only",
        action="store_true",
        help="Only gather project context; skip detection.",
    )
    analyze_parser.add_argument(
        "--no-reports",
        action="store_true",
        help="Write the structured analysis data only, without markdown reports.",
    )
    analyze_parser.add_argument(
        "--format",
        choices=OUTPUT_FORMATS,
        default=None,
        help="Artifacts to write: json (analysis/), markdown (reports/), or both (default).",
    )
    analyze_parser.add_argument(
        "--categories",
        default="all",
        help="Comma-separated stages to report: tech, patterns, gaps, or all (default).",
    )
    analyze_parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Output directory (defaults to .patternwiz under the project root).",
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service.",
    )
    _add_logging_options(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for patternwiz commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        configure_logging(verbose=bool(args.verbose), log_file=args.log_file)
    except OSError as exc:
        parser.exit(EXIT_FAILURE, f"Cannot open log file {args.log_file}: {exc}\n")

    if args.command == "analyze":
        _run_analyze(parser, args)
    elif args.command == "serve":
        from .service import run_service

        run_service(host=args.host, port=args.port)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(EXIT_FAILURE, "Unknown command\n")


def _run_analyze(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    if args.no_reports and args.format == "markdown":
        parser.error("--no-reports cannot be combined with --format=markdown")
    try:
        categories = resolve_categories([args.categories])
    except ValueError as exc:
        parser.error(str(exc))

    token = CancellationToken()
    pipeline = AnalysisPipeline(token=token)
    previous_handler = signal.signal(signal.SIGINT, _cancel_on_interrupt(token))
    try:
        outcome = pipeline.run(
            args.path,
            categories=categories,
            interactive=not args.quick and sys.stdin.isatty(),
            context_only=args.context_only,
            write_reports=not args.no_reports,
            output_format=args.format,
            output_dir=args.output_dir,
        )
    except (KeyboardInterrupt, AnalysisCancelled):
        token.cancel()
        parser.exit(EXIT_INTERRUPTED, "patternwiz analyze interrupted\n")
    except (PatternWizError, ConfigError) as exc:
        parser.exit(EXIT_FAILURE, f"patternwiz analyze failed: {exc}\n")
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    _print_summary(outcome)


def _cancel_on_interrupt(token: CancellationToken) -> Callable[[int, FrameType | None], None]:
    """First Ctrl-C cancels the run between files; a second one aborts at once."""

    def _handle(signum: int, frame: FrameType | None) -> None:
        if token.cancelled:
            raise KeyboardInterrupt
        token.cancel()
        get_logger("cli").warning("Cancelling analysis; press Ctrl-C again to abort immediately")

    return _handle


def _print_summary(outcome: AnalysisOutcome) -> None:
    report = outcome.report
    if report is None:
        print(f"Context saved for {outcome.context.project_name}")
    else:
        if report.includes("tech"):
            names = ", ".join(match.name for match in report.technologies) or "none"
            print(f"Technologies: {names}")
        if report.includes("patterns"):
            names = ", ".join(match.name for match in report.patterns) or "none"
            print(f"Patterns: {names}")
        if report.includes("gaps"):
            print(f"Recommendations: {len(report.gaps)}")
        if report.quality is not None:
            print(f"Quality score: {report.quality.value:g} / {report.quality.max_score:g}")
        if report.warnings:
            print(f"Warnings: {len(report.warnings)} file(s) could not be fully analysed")
    print(f"Output written to {_relativize(outcome.output_dir)}")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
