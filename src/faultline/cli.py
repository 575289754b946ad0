"""CLI entry point: ``faultline check``."""

from __future__ import annotations

# Phase 1: singleton logging, before any transitive litellm imports
from faultline.logging_config import setup_logging

setup_logging("WARNING")

import argparse  # noqa: E402
import asyncio  # noqa: E402
import json  # noqa: E402
import sys  # noqa: E402
from pathlib import Path  # noqa: E402
from typing import TYPE_CHECKING, Any  # noqa: E402

from faultline import __version__  # noqa: E402
from faultline.analysis.schemas import (  # noqa: E402
    Diagnostic,
    FragmentOrigin,
    SourceFragment,
)
from faultline.config import Settings  # noqa: E402
from faultline.constants import OutputFormat  # noqa: E402
from faultline.logging_config import (  # noqa: E402
    cleanup_third_party_handlers,
    set_package_level,
)

if TYPE_CHECKING:
    from faultline.services.analysis_service import DiagnosticsService

# Phase 2: Clear litellm's duplicate handlers after all imports
cleanup_third_party_handlers()


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"faultline {__version__}")
        return

    if args.command == "check":
        sys.exit(_run_check(args))
    parser.print_help()


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="faultline",
        description=(
            "Heuristic source diagnostics that "
            "catch likely syntax and structure mistakes as you type."
        ),
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )

    sub = parser.add_subparsers(dest="command")

    check = sub.add_parser(
        "check",
        help="Report diagnostics for one or more files",
    )
    check.add_argument(
        "paths",
        nargs="+",
        help="Files to check",
    )
    check.add_argument(
        "--format",
        "-f",
        choices=[f.value for f in OutputFormat],
        default=OutputFormat.TEXT.value,
        help="Output format (default: text)",
    )
    check.add_argument(
        "--no-llm",
        action="store_true",
        help="Skip the LLM advisor",
    )
    check.add_argument(
        "--max",
        type=int,
        default=None,
        dest="max_diagnostics",
        help="Maximum diagnostics per file (default: from settings)",
    )
    check.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log at DEBUG level",
    )
    return parser


def _run_check(args: argparse.Namespace) -> int:
    """Execute the check command; return the process exit code.

    0 when every file is clean, 1 when anything was reported,
    2 when a path could not be read.
    """
    from faultline.services.analysis_service import DiagnosticsService

    overrides: dict[str, Any] = {"debounce_ms": 0}
    if args.no_llm:
        overrides["enable_llm_advisor"] = False
    if args.max_diagnostics is not None:
        overrides["max_diagnostics"] = args.max_diagnostics
    settings = Settings(**overrides)
    set_package_level("DEBUG" if args.verbose else settings.log_level)
    service = DiagnosticsService(settings)

    fragments: list[SourceFragment] = []
    exit_code = 0
    for raw in args.paths:
        path = Path(raw)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            print(f"Error: cannot read {path}: {exc}", file=sys.stderr)
            exit_code = 2
            continue
        if len(text) > settings.max_fragment_length:
            print(
                f"Warning: {path} exceeds {settings.max_fragment_length}"
                " characters; skipped",
                file=sys.stderr,
            )
        fragment = SourceFragment(
            text=text,
            origin=FragmentOrigin(file_path=str(path), end_offset=len(text)),
        )
        fragments.append(fragment)

    results = asyncio.run(_check_all(service, fragments))

    if args.format == OutputFormat.JSON:
        print(_format_json(results))
    else:
        output = _format_text(results)
        if output:
            print(output)

    if exit_code == 0 and any(results.values()):
        exit_code = 1
    return exit_code


async def _check_all(
    service: DiagnosticsService, fragments: list[SourceFragment]
) -> dict[str, list[Diagnostic]]:
    return {
        f.origin.file_path: await service.analyze(f) for f in fragments
    }


def _format_text(results: dict[str, list[Diagnostic]]) -> str:
    """One ``path:line:col: severity: message [rule]`` line per finding."""
    out: list[str] = []
    for path, diagnostics in results.items():
        for d in diagnostics:
            out.append(
                f"{path}:{d.line + 1}:{d.column + 1}: "
                f"{d.severity.value}: {d.message} [{d.rule_id}]"
            )
            if d.suggestion:
                out.append(f"    hint: {d.suggestion}")
    return "\n".join(out)


def _format_json(results: dict[str, list[Diagnostic]]) -> str:
    payload = {
        path: [d.model_dump(mode="json") for d in diagnostics]
        for path, diagnostics in results.items()
    }
    return json.dumps(payload, indent=2)
