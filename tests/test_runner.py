"""Tests for step execution, test repair orchestration and suite runs."""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import MagicMock

import pytest

from autoheal.config import RepairConfig
from autoheal.driver import ClickResult
from autoheal.dsl.models import TestCase, TestSuite
from autoheal.dsl.parser import SuiteParser, parse_instruction
from autoheal.errors import DriverSessionError
from autoheal.healing.classifier import FailureKind
from autoheal.healing.suggestions import SuggestionType
from autoheal.runner.orchestrator import (
    TestRepairOrchestrator,
    TestRepairResult,
    TestRunStatus,
)
from autoheal.runner.step_executor import StepExecutor, StepStatus
from autoheal.runner.suite import SuiteRepairRunner, summarize


def make_test(name: str, *instructions: str) -> TestCase:
    return TestCase(name=name, steps=tuple(parse_instruction(i) for i in instructions))


SHOP_PAGE = {
    "buttons": ["Submit Order", "Cancel", "Sign in now"],
    "links": [],
    "inputs": [],
    "aria": [],
}


class TestStepExecutor:
    """Tests for the per-step retry loop."""

    def test_passing_step_runs_once(
        self, make_factory: Callable, fast_executor: StepExecutor, sleeps: list[float]
    ) -> None:
        """Test that a passing step is not retried."""
        driver = make_factory(clickable={"Save"})()

        outcome = fast_executor.execute(driver, parse_instruction("click Save"))

        assert outcome.passed
        assert outcome.status == StepStatus.PASSED
        assert outcome.attempts == 1
        assert sleeps == []

    def test_failing_click_exhausts_retries(
        self, fake_driver, fast_executor: StepExecutor, sleeps: list[float]
    ) -> None:
        """Test retries and backoff between attempts only."""
        outcome = fast_executor.execute(fake_driver, parse_instruction('click "Submit"'))

        assert outcome.status == StepStatus.EXHAUSTED_RETRIES
        assert outcome.attempts == 3
        assert outcome.error == "Failed to click: Submit"
        assert len(fake_driver.calls_to("smart_click")) == 3
        assert sleeps == [0.5, 0.5]

    def test_status_history(
        self, make_factory: Callable, fast_executor: StepExecutor
    ) -> None:
        """Test the recorded state transitions for a pass and a retried failure."""
        driver = make_factory(clickable={"Save"})()

        passed = fast_executor.execute(driver, parse_instruction("click Save"))
        failed = fast_executor.execute(driver, parse_instruction("click Cancel"))

        assert passed.history == [StepStatus.PENDING, StepStatus.EXECUTING, StepStatus.PASSED]
        assert failed.history == [
            StepStatus.PENDING,
            StepStatus.EXECUTING,
            StepStatus.RETRYING,
            StepStatus.EXECUTING,
            StepStatus.RETRYING,
            StepStatus.EXECUTING,
            StepStatus.EXHAUSTED_RETRIES,
        ]

    def test_stops_at_first_success(self, sleeps: list[float]) -> None:
        """Test that a step passing on a retry stops the loop."""
        driver = MagicMock()
        driver.smart_click.side_effect = [ClickResult(success=False), ClickResult(success=True)]
        executor = StepExecutor(sleep=sleeps.append)

        outcome = executor.execute(driver, parse_instruction("click Save"))

        assert outcome.passed
        assert outcome.attempts == 2
        assert sleeps == [0.5]

    def test_driver_exception_becomes_error(
        self, make_factory: Callable, fast_executor: StepExecutor
    ) -> None:
        """Test that driver exceptions never escape the loop."""
        driver = make_factory(raise_on_miss=True)()

        outcome = fast_executor.execute(driver, parse_instruction('click "Submit"'))

        assert not outcome.passed
        assert outcome.error == "element not found: Submit"

    def test_empty_exception_message_uses_type(
        self, make_factory: Callable, fast_executor: StepExecutor
    ) -> None:
        """Test errors without a message."""
        driver = make_factory(errors={"navigate": RuntimeError()})()
        outcome = fast_executor.execute(driver, parse_instruction("go to https://x.test"))
        assert outcome.error == "RuntimeError"

    def test_max_retries_at_least_one(self, fake_driver) -> None:
        """Test that a zero retry budget still runs the step once."""
        executor = StepExecutor(max_retries=0, sleep=lambda _: None)
        outcome = executor.execute(fake_driver, parse_instruction("click Save"))
        assert outcome.attempts == 1

    def test_comment_step_skips_driver(self, fake_driver, fast_executor: StepExecutor) -> None:
        """Test that comment steps pass without driver calls."""
        outcome = fast_executor.execute(fake_driver, parse_instruction("// SKIPPED: click Buy"))
        assert outcome.passed
        assert fake_driver.calls == []

    def test_navigate(self, fake_driver, fast_executor: StepExecutor) -> None:
        """Test that navigate passes unless the driver raises."""
        outcome = fast_executor.execute(fake_driver, parse_instruction("go to https://x.test"))
        assert outcome.passed
        assert fake_driver.calls_to("navigate") == [("https://x.test",)]

    def test_fill_and_select(self, fake_driver, fast_executor: StepExecutor) -> None:
        """Test that fill and select both go through fill."""
        fast_executor.execute(fake_driver, parse_instruction('type "bob" in username'))
        fast_executor.execute(fake_driver, parse_instruction('select "Canada" from country'))
        assert fake_driver.calls_to("fill") == [("username", "bob"), ("country", "Canada")]

    def test_assert_failure_message(
        self, make_factory: Callable, fast_executor: StepExecutor
    ) -> None:
        """Test driver assertion messages and the fallback message."""
        with_message = 'verify title is "Home"'
        without_message = 'verify page contains "Welcome"'
        driver = make_factory(
            failing_asserts={with_message: "Expected title Home", without_message: ""}
        )()

        first = fast_executor.execute(driver, parse_instruction(with_message))
        second = fast_executor.execute(driver, parse_instruction(without_message))

        assert first.error == "Expected title Home"
        assert second.error == f"Assertion failed: {without_message}"

    def test_wait_for_text(self, fake_driver, fast_executor: StepExecutor) -> None:
        """Test waits on text use the configured timeout."""
        fast_executor.execute(fake_driver, parse_instruction("wait for 'Welcome' appears"))
        assert fake_driver.calls_to("wait_for_text") == [("Welcome", 10000)]

    def test_wait_seconds_sleeps(
        self, fake_driver, fast_executor: StepExecutor, sleeps: list[float]
    ) -> None:
        """Test fixed waits."""
        fast_executor.execute(fake_driver, parse_instruction("wait 2 seconds"))
        assert sleeps == [2.0]

    def test_scroll_direction(self, fake_driver, fast_executor: StepExecutor) -> None:
        """Test scroll sign."""
        fast_executor.execute(fake_driver, parse_instruction("scroll down"))
        fast_executor.execute(fake_driver, parse_instruction("scroll up"))
        assert fake_driver.calls_to("scroll_by") == [(500,), (-500,)]

    def test_unknown_instruction(self, fake_driver, fast_executor: StepExecutor) -> None:
        """Test that unknown steps fall back to clicking the text."""
        outcome = fast_executor.execute(fake_driver, parse_instruction("do a barrel roll"))
        assert fake_driver.calls_to("smart_click")[0] == ("do a barrel roll",)
        assert outcome.error == "Could not interpret: do a barrel roll"


class TestOrchestrator:
    """Tests for single test repair."""

    def test_selector_repair_auto_applied(
        self, make_factory: Callable, fast_executor: StepExecutor
    ) -> None:
        """Test a missing button replaced by a similar one and verified."""
        factory = make_factory(clickable={"Submit Order"}, candidates=SHOP_PAGE, raise_on_miss=True)
        orchestrator = TestRepairOrchestrator(factory, executor=fast_executor)
        test = make_test("Checkout", "go to https://shop.test", 'click "Submit"')

        result = orchestrator.repair_test(test, auto_apply=True)

        assert result.failed_steps == 1
        assert result.repaired_steps == 1
        analysis = result.failure_analyses[0]
        assert analysis.error == "element not found: Submit"
        assert analysis.failure_kind == FailureKind.SELECTOR_NOT_FOUND
        assert 'button: "Submit Order"' in analysis.alternative_selectors
        best = analysis.best_suggestion
        assert best is not None
        assert best.type == SuggestionType.SELECTOR_UPDATE
        assert best.confidence == 0.7
        assert best.suggested_instruction == "click Submit Order"
        assert result.repaired_test is not None
        assert result.repaired_test.instructions() == [
            "go to https://shop.test",
            "click Submit Order",
        ]
        assert result.repaired_test_passes is True
        assert len(factory.drivers) == 2
        assert all(d.closed for d in factory.drivers)

    def test_manual_mode_keeps_original_steps(
        self, make_factory: Callable, fast_executor: StepExecutor
    ) -> None:
        """Test that suggestions are not applied without auto-apply."""
        factory = make_factory(clickable={"Submit Order"}, candidates=SHOP_PAGE)
        orchestrator = TestRepairOrchestrator(factory, executor=fast_executor)
        test = make_test("Checkout", 'click "Submit"')

        result = orchestrator.repair_test(test)

        assert result.failed_steps == 1
        assert result.repaired_steps == 0
        assert result.repaired_test is not None
        assert result.repaired_test.instructions() == ['click "Submit"']
        assert result.repaired_test_passes is None
        assert len(factory.drivers) == 1

    def test_original_test_not_mutated(
        self, make_factory: Callable, fast_executor: StepExecutor
    ) -> None:
        """Test that repair builds a new test."""
        factory = make_factory(clickable={"Submit Order"}, candidates=SHOP_PAGE)
        test = make_test("Checkout", 'click "Submit"')

        result = TestRepairOrchestrator(factory, executor=fast_executor).repair_test(
            test, auto_apply=True
        )

        assert result.original_test is test
        assert test.instructions() == ['click "Submit"']

    def test_wait_timeout(self, make_factory: Callable, fast_executor: StepExecutor) -> None:
        """Test that a text wait timing out suggests a longer wait."""
        factory = make_factory(
            errors={"wait_for_text": TimeoutError("Timeout 10000ms exceeded")}
        )
        test = make_test("Welcome", "wait for 'Welcome' appears")

        result = TestRepairOrchestrator(factory, executor=fast_executor).repair_test(test)

        analysis = result.failure_analyses[0]
        assert analysis.failure_kind == FailureKind.TIMEOUT
        add_waits = [s for s in analysis.suggestions if s.type == SuggestionType.ADD_WAIT]
        assert len(add_waits) == 1
        assert add_waits[0].confidence == 0.7
        assert add_waits[0].suggested_instruction.startswith("wait 5 seconds\n")

    def test_block_scalar_step_auto_applied(
        self, make_factory: Callable, fast_executor: StepExecutor
    ) -> None:
        """Test that a YAML block step with a trailing newline repairs cleanly."""
        suite = SuiteParser().parse_string(
            "name: Welcome\n"
            "tests:\n"
            "  - name: Greeting\n"
            "    steps:\n"
            "      - |\n"
            "        wait for 'Welcome' appears\n",
            fmt="yaml",
        )
        factory = make_factory(
            errors={"wait_for_text": TimeoutError("Timeout 10000ms exceeded")}
        )

        result = TestRepairOrchestrator(factory, executor=fast_executor).repair_test(
            suite.tests[0], auto_apply=True
        )

        assert result.failure_analyses[0].failure_kind == FailureKind.TIMEOUT
        assert result.repaired_steps == 1
        assert result.repaired_test is not None
        assert result.repaired_test.instructions() == ["wait for 'Welcome' appears"]
        assert result.repaired_test.steps[0].target == "Welcome"
        assert result.repaired_test_passes is False

    def test_failed_assertion_suggests_url(
        self, make_factory: Callable, fast_executor: StepExecutor
    ) -> None:
        """Test assertion repair from the current URL."""
        instruction = 'verify page contains "Thank you"'
        factory = make_factory(
            failing_asserts={instruction: ""},
            context={"url": "https://x.test/checkout/confirm", "title": "", "visibleText": []},
        )
        test = make_test("Confirm", instruction)

        result = TestRepairOrchestrator(factory, executor=fast_executor).repair_test(test)

        analysis = result.failure_analyses[0]
        assert analysis.failure_kind == FailureKind.ASSERTION_FAILED
        assert any(
            s.type == SuggestionType.ASSERTION_UPDATE
            and s.suggested_instruction == 'verify url contains "/checkout/confirm"'
            for s in analysis.suggestions
        )

    def test_verification_failure_reported(
        self, make_factory: Callable, fast_executor: StepExecutor
    ) -> None:
        """Test that a repair that still fails is flagged."""
        factory = make_factory(
            errors={"wait_for_text": TimeoutError("Timeout 10000ms exceeded")}
        )
        test = make_test("Welcome", "wait for 'Welcome' appears")

        result = TestRepairOrchestrator(factory, executor=fast_executor).repair_test(
            test, auto_apply=True
        )

        assert result.repaired_steps == 1
        assert result.repaired_test_passes is False

    def test_no_verify(self, make_factory: Callable, fast_executor: StepExecutor) -> None:
        """Test that verification can be disabled."""
        factory = make_factory(clickable={"Submit Order"}, candidates=SHOP_PAGE)
        test = make_test("Checkout", 'click "Submit"')

        result = TestRepairOrchestrator(factory, executor=fast_executor).repair_test(
            test, auto_apply=True, verify_repairs=False
        )

        assert result.repaired_steps == 1
        assert result.repaired_test_passes is None
        assert len(factory.drivers) == 1

    def test_config_defaults_apply(
        self, make_factory: Callable, fast_executor: StepExecutor
    ) -> None:
        """Test that auto-apply comes from config when not passed."""
        factory = make_factory(clickable={"Submit Order"}, candidates=SHOP_PAGE)
        orchestrator = TestRepairOrchestrator(
            factory, config=RepairConfig(auto_apply=True), executor=fast_executor
        )

        result = orchestrator.repair_test(make_test("Checkout", 'click "Submit"'))

        assert result.repaired_steps == 1
        assert result.repaired_test_passes is True

    def test_repaired_test_is_stable(
        self, make_factory: Callable, fast_executor: StepExecutor
    ) -> None:
        """Test that repairing a verified repair changes nothing."""
        factory = make_factory(clickable={"Submit Order"}, candidates=SHOP_PAGE)
        orchestrator = TestRepairOrchestrator(factory, executor=fast_executor)
        first = orchestrator.repair_test(make_test("Checkout", 'click "Submit"'), auto_apply=True)
        assert first.repaired_test is not None

        for auto_apply in (False, True):
            second = orchestrator.repair_test(first.repaired_test, auto_apply=auto_apply)

            assert second.failed_steps == 0
            assert second.repaired_steps == 0
            assert second.repaired_test is None
            assert second.repaired_test_passes is None
            assert second.status == TestRunStatus.ALL_PASSED

    def test_passing_test_has_no_repair(
        self, make_factory: Callable, fast_executor: StepExecutor
    ) -> None:
        """Test a clean run."""
        factory = make_factory()
        result = TestRepairOrchestrator(factory, executor=fast_executor).repair_test(
            make_test("Home", "go to https://x.test", "scroll down")
        )

        assert not result.has_failures
        assert result.repaired_test is None
        assert result.status == TestRunStatus.ALL_PASSED
        assert [o.status for o in result.step_outcomes] == [StepStatus.PASSED, StepStatus.PASSED]

    def test_failed_outcome_marked_analyzed(
        self, make_factory: Callable, fast_executor: StepExecutor
    ) -> None:
        """Test the final state of an analyzed step."""
        result = TestRepairOrchestrator(make_factory(), executor=fast_executor).repair_test(
            make_test("Checkout", 'click "Submit"')
        )
        assert result.step_outcomes[0].status == StepStatus.ANALYZED
        assert result.step_outcomes[0].attempts == 3
        assert result.step_outcomes[0].history[-2:] == [
            StepStatus.EXHAUSTED_RETRIES,
            StepStatus.ANALYZED,
        ]
        assert result.status == TestRunStatus.COMPLETED_WITH_FAILURES

    def test_session_error_propagates(self, fast_executor: StepExecutor) -> None:
        """Test that a driver that cannot start aborts the run."""

        def broken_factory():
            raise ConnectionError("no browser available")

        orchestrator = TestRepairOrchestrator(broken_factory, executor=fast_executor)

        with pytest.raises(DriverSessionError, match="no browser available"):
            orchestrator.repair_test(make_test("Home", "go to https://x.test"))

    def test_session_closed_when_analysis_raises(
        self, make_factory: Callable, fast_executor: StepExecutor
    ) -> None:
        """Test that the driver is released on unexpected errors."""
        factory = make_factory()
        analyzer = MagicMock()
        analyzer.analyze.side_effect = RuntimeError("analyzer bug")
        orchestrator = TestRepairOrchestrator(factory, executor=fast_executor, analyzer=analyzer)

        with pytest.raises(RuntimeError, match="analyzer bug"):
            orchestrator.repair_test(make_test("Checkout", 'click "Submit"'))

        assert factory.drivers[0].closed

    def test_close_errors_suppressed(
        self, make_factory: Callable, fast_executor: StepExecutor
    ) -> None:
        """Test that a failing close does not fail the run."""
        factory = make_factory(close_error=RuntimeError("already closed"))
        result = TestRepairOrchestrator(factory, executor=fast_executor).repair_test(
            make_test("Home", "go to https://x.test")
        )
        assert result.failed_steps == 0


class TestSuiteRepair:
    """Tests for suite runs and summaries."""

    def test_suite_fully_repaired(
        self, make_factory: Callable, fast_executor: StepExecutor
    ) -> None:
        """Test a suite with two repaired tests and one clean test."""
        factory = make_factory(clickable={"Submit Order", "Sign in now"}, candidates=SHOP_PAGE)
        suite = TestSuite(
            name="Shop",
            tests=(
                make_test("Browse", "go to https://shop.test"),
                make_test("Checkout", 'click "Submit"'),
                make_test("Login", 'click "Sign in"'),
            ),
        )
        runner = SuiteRepairRunner(TestRepairOrchestrator(factory, executor=fast_executor))

        result = runner.repair_suite(suite, auto_apply=True)

        assert result.suite_name == "Shop"
        assert result.summary.total_tests == 3
        assert result.summary.tests_with_failures == 2
        assert result.summary.tests_repaired == 2
        assert result.summary.total_failed_steps == 2
        assert result.summary.total_repaired_steps == 2
        assert result.summary.repair_success_rate == 100.0
        assert all(r.repaired_test_passes for r in result.test_results[1:])

    def test_summary_without_failures(self) -> None:
        """Test that a clean suite reports full success."""
        results = [TestRepairResult(original_test=make_test("Home", "go to https://x.test"))]

        summary = summarize(results)

        assert summary.tests_with_failures == 0
        assert summary.repair_success_rate == 100.0

    def test_summary_partial_repair(self) -> None:
        """Test the success rate with unrepaired steps."""
        test = make_test("Home", "go to https://x.test")
        results = [
            TestRepairResult(original_test=test, failed_steps=3, repaired_steps=1),
            TestRepairResult(original_test=test, failed_steps=1, repaired_steps=0),
        ]

        summary = summarize(results)

        assert summary.tests_with_failures == 2
        assert summary.tests_repaired == 1
        assert summary.repair_success_rate == 25.0

    def test_empty_summary(self) -> None:
        """Test an empty result list."""
        summary = summarize([])
        assert summary.total_tests == 0
        assert summary.repair_success_rate == 100.0
