"""Sequential suite repair and suite-level statistics."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from autoheal.dsl.models import TestSuite
    from autoheal.runner.orchestrator import TestRepairOrchestrator, TestRepairResult

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class SuiteSummary:
    """Derived counters over a suite's repair results."""

    total_tests: int = 0
    tests_with_failures: int = 0
    tests_repaired: int = 0
    total_failed_steps: int = 0
    total_repaired_steps: int = 0
    repair_success_rate: float = 100.0


@dataclass
class SuiteResult:
    """Repair results for every test of a suite, in run order."""

    suite_name: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    duration_ms: int = 0
    test_results: list[TestRepairResult] = field(default_factory=list)
    summary: SuiteSummary = field(default_factory=SuiteSummary)


def summarize(results: Iterable[TestRepairResult]) -> SuiteSummary:
    """Compute suite counters. The success rate is 100 when nothing failed."""
    results = list(results)
    total_failed = sum(r.failed_steps for r in results)
    total_repaired = sum(r.repaired_steps for r in results)

    return SuiteSummary(
        total_tests=len(results),
        tests_with_failures=sum(1 for r in results if r.failed_steps > 0),
        tests_repaired=sum(1 for r in results if r.repaired_steps > 0),
        total_failed_steps=total_failed,
        total_repaired_steps=total_repaired,
        repair_success_rate=(
            total_repaired / total_failed * 100 if total_failed > 0 else 100.0
        ),
    )


class SuiteRepairRunner:
    """Runs the orchestrator over each test of a suite, one at a time."""

    def __init__(self, orchestrator: TestRepairOrchestrator) -> None:
        self._orchestrator = orchestrator
        self._log = logger.bind(component="suite_runner")

    def repair_suite(
        self,
        suite: TestSuite,
        auto_apply: bool | None = None,
        verify_repairs: bool | None = None,
    ) -> SuiteResult:
        """
        Repair every test in the suite sequentially.

        Each test gets its own driver session. A DriverSessionError for any
        test propagates and aborts the suite.
        """
        result = SuiteResult(suite_name=suite.name)

        self._log.info("Repairing test suite", suite=suite.name, tests=len(suite.tests))

        for test in suite.tests:
            result.test_results.append(
                self._orchestrator.repair_test(
                    test,
                    auto_apply=auto_apply,
                    verify_repairs=verify_repairs,
                )
            )

        result.summary = summarize(result.test_results)
        result.duration_ms = int(
            (datetime.now(UTC) - result.timestamp).total_seconds() * 1000
        )

        self._log.info(
            "Test suite repair completed",
            suite=suite.name,
            tests_with_failures=result.summary.tests_with_failures,
            tests_repaired=result.summary.tests_repaired,
            repair_success_rate=result.summary.repair_success_rate,
            duration_ms=result.duration_ms,
        )
        return result
