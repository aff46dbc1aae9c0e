"""
Command-line interface for autoheal.

Provides commands for validating natural language test suites and for
running them with failure analysis and repair.
"""

from __future__ import annotations

import argparse
import re
import sys
from pathlib import Path

import structlog

from autoheal import __version__
from autoheal.config import load_repair_config
from autoheal.dsl.models import TestSuite
from autoheal.dsl.parser import SuiteParser
from autoheal.errors import AutoHealError, InstructionParseError
from autoheal.reporting import export_repaired_test, format_repair_report, suite_to_json
from autoheal.runner.orchestrator import TestRepairOrchestrator, TestRepairResult
from autoheal.runner.suite import SuiteRepairRunner, SuiteResult

logger = structlog.get_logger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose if hasattr(args, "verbose") else False)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except Exception as e:
        logger.error("Command failed", error=str(e))
        if hasattr(args, "verbose") and args.verbose:
            raise
        print(f"Error: {e}", file=sys.stderr)
        return 1


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="autoheal",
        description="Run natural language browser tests and repair failing steps",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"autoheal {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parse_parser = subparsers.add_parser("parse", help="Parse and validate test suites")
    parse_parser.add_argument(
        "paths",
        nargs="+",
        help="Path(s) to suite files or directories",
    )
    parse_parser.set_defaults(func=cmd_parse)

    repair_parser = subparsers.add_parser("repair", help="Run test suites and repair failures")
    repair_parser.add_argument(
        "paths",
        nargs="+",
        help="Path(s) to suite files or directories",
    )
    repair_parser.add_argument(
        "--auto-apply",
        action="store_true",
        default=None,
        help="Substitute the top suggestion for each failed step",
    )
    repair_parser.add_argument(
        "--no-verify",
        action="store_false",
        dest="verify_repairs",
        default=None,
        help="Skip re-running repaired tests",
    )
    repair_parser.add_argument(
        "--max-retries",
        type=int,
        help="Attempts per step before analysis",
    )
    repair_parser.add_argument(
        "--retry-delay-ms",
        type=int,
        help="Delay between attempts of a step",
    )
    repair_parser.add_argument(
        "--headed",
        action="store_false",
        dest="headless",
        default=None,
        help="Show the browser window",
    )
    repair_parser.add_argument(
        "--output-format",
        choices=["text", "json"],
        default="text",
        help="Output format for the report",
    )
    repair_parser.add_argument(
        "--output-file",
        help="Output file path",
    )
    repair_parser.add_argument(
        "--export-dir",
        help="Directory to write one repaired test file per test",
    )
    repair_parser.set_defaults(func=cmd_repair)

    return parser


def configure_logging(verbose: bool) -> None:
    """Configure structured logging."""
    import logging

    level = logging.DEBUG if verbose else logging.INFO
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer() if verbose else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, stream=sys.stderr)


def load_suites(paths: list[str], parser: SuiteParser | None = None) -> list[TestSuite]:
    """Parse every file and directory given on the command line."""
    parser = parser or SuiteParser()
    suites: list[TestSuite] = []

    for path_str in paths:
        path = Path(path_str)
        if path.is_dir():
            suites.extend(parser.parse_directory(path))
        elif path.is_file():
            suites.append(parser.parse_file(path))
        else:
            raise InstructionParseError(f"Path not found: {path}")

    return suites


def cmd_parse(args: argparse.Namespace) -> int:
    """Parse suites and print their tests with the action of every step."""
    parser = SuiteParser()
    errors = 0

    for path_str in args.paths:
        try:
            suites = load_suites([path_str], parser)
        except AutoHealError as e:
            print(f"Invalid: {path_str}", file=sys.stderr)
            print(f"  {e}", file=sys.stderr)
            errors += 1
            continue

        for suite in suites:
            print(f"Suite: {suite.name} ({len(suite.tests)} tests)")
            for test in suite.tests:
                print(f"  Test: {test.name} ({len(test.steps)} steps)")
                for step in test.steps:
                    print(f"    [{step.action}] {step.instruction}")

    if errors:
        print(f"\n{errors} path(s) with errors", file=sys.stderr)
        return 1

    print("\nAll suites valid")
    return 0


def cmd_repair(args: argparse.Namespace) -> int:
    """Run suites through the repair engine and report the results."""
    from dotenv import load_dotenv

    from autoheal.drivers.playwright_driver import playwright_driver_factory

    load_dotenv()

    suites = load_suites(args.paths)
    if not suites:
        print("No test suites found", file=sys.stderr)
        return 1

    config = load_repair_config().with_overrides(
        auto_apply=args.auto_apply,
        verify_repairs=args.verify_repairs,
        max_retries=args.max_retries,
        retry_delay_ms=args.retry_delay_ms,
        headless=args.headless,
    )

    orchestrator = TestRepairOrchestrator(
        driver_factory=playwright_driver_factory(headless=config.headless),
        config=config,
    )
    runner = SuiteRepairRunner(orchestrator)

    suite_results = [runner.repair_suite(suite) for suite in suites]

    if args.output_format == "json":
        output = "\n".join(suite_to_json(r) for r in suite_results)
    else:
        output = "\n".join(format_repair_report(r) for r in suite_results)

    if args.output_file:
        Path(args.output_file).write_text(output, encoding="utf-8")
        print(f"Report written to {args.output_file}")
    else:
        print(output)

    if args.export_dir:
        written = export_suite_results(suite_results, Path(args.export_dir))
        print(f"Exported {len(written)} test(s) to {args.export_dir}")

    unresolved = sum(
        1 for r in suite_results for t in r.test_results if not is_resolved(t)
    )
    total = sum(len(r.test_results) for r in suite_results)
    print(f"\nSummary: {total - unresolved} resolved, {unresolved} unresolved, {total} total")

    return 0 if unresolved == 0 else 1


def is_resolved(result: TestRepairResult) -> bool:
    """A test is resolved when it passed, or every failure was repaired and verified."""
    if result.failed_steps == 0:
        return True
    if result.repaired_steps < result.failed_steps:
        return False
    return result.repaired_test_passes is not False


def _slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "test"


def export_suite_results(results: list[SuiteResult], export_dir: Path) -> list[Path]:
    """Write one exported test file per test; returns the written paths."""
    export_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []

    for suite_result in results:
        for index, test_result in enumerate(suite_result.test_results, start=1):
            name = f"{_slugify(suite_result.suite_name)}-{index:02d}-{_slugify(test_result.original_test.name)}.txt"
            path = export_dir / name
            path.write_text(export_repaired_test(test_result) + "\n", encoding="utf-8")
            written.append(path)

    logger.info("Exported repaired tests", directory=str(export_dir), count=len(written))
    return written


if __name__ == "__main__":
    sys.exit(main())
