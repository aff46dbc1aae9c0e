"""
Test repair orchestrator.

Drives a whole test through the step executor, analyzes every step that
exhausts its retries, optionally substitutes the top suggestion, and
optionally re-runs the repaired test in a fresh session to verify it.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog

from autoheal.config import RepairConfig
from autoheal.driver import open_session
from autoheal.dsl.parser import parse_instruction
from autoheal.healing.alternatives import AlternativeTargetFinder
from autoheal.healing.analyzer import FailureAnalysis, FailureAnalyzer
from autoheal.healing.page_context import PageContextSnapshotter
from autoheal.runner.step_executor import StepExecutor, StepOutcome, StepStatus

if TYPE_CHECKING:
    from autoheal.driver import BrowserDriver, DriverFactory
    from autoheal.dsl.models import TestCase, TestStep

logger = structlog.get_logger(__name__)

InstructionParser = Callable[[str], "TestStep"]


class TestRunStatus(StrEnum):
    """Terminal state of a test after every step has run."""

    ALL_PASSED = "all_passed"
    COMPLETED_WITH_FAILURES = "completed_with_failures"


@dataclass
class TestRepairResult:
    """Outcome of running and repairing one test."""

    original_test: TestCase
    repaired_test: TestCase | None = None
    failed_steps: int = 0
    repaired_steps: int = 0
    failure_analyses: list[FailureAnalysis] = field(default_factory=list)
    step_outcomes: list[StepOutcome] = field(default_factory=list)
    repaired_test_passes: bool | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    duration_ms: int = 0

    @property
    def has_failures(self) -> bool:
        return self.failed_steps > 0

    @property
    def status(self) -> TestRunStatus:
        if self.has_failures:
            return TestRunStatus.COMPLETED_WITH_FAILURES
        return TestRunStatus.ALL_PASSED


class TestRepairOrchestrator:
    """
    Runs a TestCase step by step and produces repair results.

    Features:
    - Fixed-backoff retries per step (StepExecutor)
    - Failure classification, alternative target search and page context
    - Manual-review mode (original step kept) or auto-apply mode (top
      suggestion substituted)
    - Verification pass of the repaired test in a fresh driver session
    """

    def __init__(
        self,
        driver_factory: DriverFactory,
        config: RepairConfig | None = None,
        executor: StepExecutor | None = None,
        analyzer: FailureAnalyzer | None = None,
        instruction_parser: InstructionParser = parse_instruction,
    ) -> None:
        self._driver_factory = driver_factory
        self._config = config or RepairConfig()
        self._executor = executor or StepExecutor(
            max_retries=self._config.max_retries,
            retry_delay_ms=self._config.retry_delay_ms,
            wait_for_text_timeout_ms=self._config.wait_for_text_timeout_ms,
            scroll_distance_px=self._config.scroll_distance_px,
        )
        self._analyzer = analyzer or FailureAnalyzer(
            finder=AlternativeTargetFinder(max_results=self._config.max_alternatives),
            snapshotter=PageContextSnapshotter(
                max_entries=self._config.max_visible_text,
                max_entry_length=self._config.max_visible_text_length,
            ),
        )
        self._parse_instruction = instruction_parser
        self._log = logger.bind(component="repair_orchestrator")

    @property
    def config(self) -> RepairConfig:
        return self._config

    def repair_test(
        self,
        test: TestCase,
        auto_apply: bool | None = None,
        verify_repairs: bool | None = None,
    ) -> TestRepairResult:
        """
        Run a test, analyze failures, and suggest or apply repairs.

        Args:
            test: Test to run; never mutated
            auto_apply: Substitute top suggestions (defaults to config)
            verify_repairs: Re-run the repaired test (defaults to config)

        Returns:
            TestRepairResult. Only DriverSessionError escapes.
        """
        auto_apply = self._config.auto_apply if auto_apply is None else auto_apply
        verify_repairs = self._config.verify_repairs if verify_repairs is None else verify_repairs

        result = TestRepairResult(original_test=test)
        repaired: list[TestStep] = []

        self._log.info(
            "Analyzing test",
            test=test.name,
            steps=len(test.steps),
            auto_apply=auto_apply,
        )

        with open_session(self._driver_factory) as driver:
            for step in test.steps:
                repaired.append(self._run_step(driver, step, result, auto_apply))

        if result.failed_steps > 0:
            result.repaired_test = test.with_steps(repaired)

        if auto_apply and verify_repairs and result.repaired_test is not None:
            result.repaired_test_passes = self.verify_test(result.repaired_test)

        result.duration_ms = int(
            (datetime.now(UTC) - result.started_at).total_seconds() * 1000
        )

        self._log.info(
            "Test analysis completed",
            test=test.name,
            status=result.status,
            failed=result.failed_steps,
            repaired=result.repaired_steps,
            repaired_test_passes=result.repaired_test_passes,
            duration_ms=result.duration_ms,
        )
        return result

    def verify_test(self, test: TestCase) -> bool:
        """
        Run every step of a test in a fresh session.

        A single failing step fails the whole run; there is no partial credit.
        """
        self._log.info("Verifying repaired test", test=test.name)

        all_passed = True
        with open_session(self._driver_factory) as driver:
            for step in test.steps:
                outcome = self._executor.execute(driver, step)
                if not outcome.passed:
                    all_passed = False
                    self._log.info(
                        "Verification step failed",
                        test=test.name,
                        instruction=step.instruction,
                        error=outcome.error,
                    )

        self._log.info(
            "Repaired test passes" if all_passed else "Repaired test still fails",
            test=test.name,
        )
        return all_passed

    def _run_step(
        self,
        driver: BrowserDriver,
        step: TestStep,
        result: TestRepairResult,
        auto_apply: bool,
    ) -> TestStep:
        """Execute one step and return the step to keep in the repaired test."""
        outcome = self._executor.execute(driver, step)
        result.step_outcomes.append(outcome)
        if outcome.passed:
            return step

        result.failed_steps += 1
        analysis = self._analyzer.analyze(driver, step, outcome.error)
        result.failure_analyses.append(analysis)
        outcome.advance(StepStatus.ANALYZED)

        best = analysis.best_suggestion
        if not auto_apply or best is None:
            return step

        self._log.info(
            "Auto-applying suggestion",
            instruction=step.instruction,
            suggestion=best.description,
            confidence=best.confidence,
        )
        result.repaired_steps += 1
        return self._parse_instruction(best.final_instruction)
