"""
Plain-text and JSON rendering of repair results.

All functions here are pure string construction.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from autoheal.runner.orchestrator import TestRepairResult
    from autoheal.runner.suite import SuiteResult

REPORT_WIDTH = 78
TOP_SUGGESTIONS = 2


def _percent(confidence: float) -> int:
    return int(confidence * 100 + 0.5)


def _verification_banner(passes: bool) -> str:
    return "[PASS] Repaired test PASSES" if passes else "[FAIL] Repaired test still FAILS"


def format_repair_report(result: SuiteResult) -> str:
    """Format a suite repair result as a human-readable report."""
    summary = result.summary
    lines: list[str] = []

    lines.append("")
    lines.append("=" * REPORT_WIDTH)
    lines.append("TEST REPAIR REPORT".center(REPORT_WIDTH))
    lines.append("=" * REPORT_WIDTH)
    lines.append("")
    lines.append(f"Suite: {result.suite_name}")
    lines.append(f"Duration: {result.duration_ms / 1000:.1f}s")
    lines.append(f"Timestamp: {result.timestamp.isoformat()}")
    lines.append("")

    lines.append("SUMMARY")
    lines.append("-" * 60)
    lines.append(f"  Total Tests: {summary.total_tests}")
    lines.append(f"  Tests with Failures: {summary.tests_with_failures}")
    lines.append(f"  Tests Repaired: {summary.tests_repaired}")
    lines.append(f"  Total Failed Steps: {summary.total_failed_steps}")
    lines.append(f"  Total Repaired Steps: {summary.total_repaired_steps}")
    lines.append(f"  Repair Success Rate: {summary.repair_success_rate:.0f}%")
    lines.append("")

    for test_result in result.test_results:
        if test_result.failed_steps == 0:
            continue

        lines.append("")
        lines.append(f"TEST: {test_result.original_test.name}")
        lines.append(f"   Failed Steps: {test_result.failed_steps}")
        lines.append(f"   Repaired: {test_result.repaired_steps}")

        for analysis in test_result.failure_analyses:
            lines.append("")
            lines.append(f"   x {analysis.step.instruction}")
            lines.append(f"      Error: {analysis.error}")
            lines.append(f"      Type: {analysis.failure_kind}")

            if analysis.suggestions:
                lines.append("      Suggestions:")
                for suggestion in analysis.suggestions[:TOP_SUGGESTIONS]:
                    lines.append(
                        f"         - {suggestion.description} ({_percent(suggestion.confidence)}%)"
                    )
                    lines.append(f"           -> {suggestion.suggested_instruction}")

        if test_result.repaired_test_passes is not None:
            lines.append("")
            lines.append(f"   {_verification_banner(test_result.repaired_test_passes)}")

    lines.append("")
    return "\n".join(lines)


def export_repaired_test(result: TestRepairResult) -> str:
    """Render a test as one instruction per line, repaired when possible."""
    if result.repaired_test is None:
        lines = [
            f"# Test: {result.original_test.name}",
            "# No repairs needed",
            *result.original_test.instructions(),
        ]
        return "\n".join(lines)

    lines = [
        f"# Test: {result.repaired_test.name} (Repaired)",
        f"# Original failures: {result.failed_steps}",
        f"# Repairs applied: {result.repaired_steps}",
        "",
        *result.repaired_test.instructions(),
    ]
    return "\n".join(lines)


def result_to_dict(result: TestRepairResult) -> dict[str, Any]:
    """Compact dictionary form of one test's repair result."""
    return {
        "test_name": result.original_test.name,
        "status": str(result.status),
        "failed_steps": result.failed_steps,
        "repaired_steps": result.repaired_steps,
        "repaired_test_passes": result.repaired_test_passes,
        "duration_ms": result.duration_ms,
        "repairs": [
            {
                "step": analysis.step.instruction,
                "error": analysis.error,
                "failure_kind": str(analysis.failure_kind),
                "alternatives": list(analysis.alternative_selectors),
                "suggestion": (
                    analysis.best_suggestion.suggested_instruction
                    if analysis.best_suggestion
                    else "No suggestion"
                ),
                "confidence": (
                    analysis.best_suggestion.confidence if analysis.best_suggestion else 0.0
                ),
            }
            for analysis in result.failure_analyses
        ],
        "repaired_instructions": (
            result.repaired_test.instructions() if result.repaired_test else None
        ),
    }


def suite_to_json(result: SuiteResult, indent: int = 2) -> str:
    """Serialize a suite result to JSON."""
    summary = result.summary
    return json.dumps(
        {
            "suite_name": result.suite_name,
            "timestamp": result.timestamp.isoformat(),
            "duration_ms": result.duration_ms,
            "summary": {
                "total_tests": summary.total_tests,
                "tests_with_failures": summary.tests_with_failures,
                "tests_repaired": summary.tests_repaired,
                "total_failed_steps": summary.total_failed_steps,
                "total_repaired_steps": summary.total_repaired_steps,
                "repair_success_rate": summary.repair_success_rate,
            },
            "tests": [result_to_dict(r) for r in result.test_results],
        },
        indent=indent,
    )
