"""
Step executor with a bounded retry loop.

Each action maps to exactly one driver capability. Driver exceptions are
converted into the step's error string and never escape the retry loop.
Page state is not rolled back between attempts.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog

from autoheal.dsl.models import StepAction

if TYPE_CHECKING:
    from autoheal.dsl.models import TestStep
    from autoheal.driver import BrowserDriver

logger = structlog.get_logger(__name__)


class StepStatus(StrEnum):
    """Per-step states while a test is being repaired."""

    PENDING = "pending"
    EXECUTING = "executing"
    PASSED = "passed"
    RETRYING = "retrying"
    EXHAUSTED_RETRIES = "exhausted_retries"
    ANALYZED = "analyzed"


@dataclass
class StepOutcome:
    """Result of running one step through the retry loop."""

    step: TestStep
    status: StepStatus = StepStatus.PENDING
    attempts: int = 0
    error: str = ""
    duration_ms: int = 0
    history: list[StepStatus] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.history:
            self.history.append(self.status)

    @property
    def passed(self) -> bool:
        return self.status == StepStatus.PASSED

    def advance(self, status: StepStatus) -> None:
        """Move to ``status`` and record the transition."""
        self.status = status
        self.history.append(status)


class StepExecutor:
    """Runs single steps against a driver, retrying with a fixed backoff."""

    def __init__(
        self,
        max_retries: int = 3,
        retry_delay_ms: int = 500,
        wait_for_text_timeout_ms: int = 10000,
        scroll_distance_px: int = 500,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._max_retries = max(1, max_retries)
        self._retry_delay_ms = retry_delay_ms
        self._wait_for_text_timeout_ms = wait_for_text_timeout_ms
        self._scroll_distance_px = scroll_distance_px
        self._sleep = sleep
        self._log = logger.bind(component="step_executor")

    def execute(self, driver: BrowserDriver, step: TestStep) -> StepOutcome:
        """
        Run a step up to ``max_retries`` times, stopping at the first success.

        Returns an outcome in PASSED or EXHAUSTED_RETRIES state. Its history
        runs PENDING, EXECUTING, then RETRYING and EXECUTING for every retry.
        """
        start_time = time.monotonic()
        outcome = StepOutcome(step=step)

        self._log.debug("Executing step", instruction=step.instruction, action=step.action)

        while outcome.attempts < self._max_retries:
            outcome.attempts += 1
            outcome.advance(StepStatus.EXECUTING)
            try:
                passed, outcome.error = self.perform(driver, step)
            except Exception as e:
                passed, outcome.error = False, str(e) or type(e).__name__

            if passed:
                outcome.error = ""
                outcome.advance(StepStatus.PASSED)
                outcome.duration_ms = int((time.monotonic() - start_time) * 1000)
                return outcome

            if outcome.attempts < self._max_retries:
                outcome.advance(StepStatus.RETRYING)
                self._log.debug(
                    "Step failed, retrying",
                    instruction=step.instruction,
                    attempt=outcome.attempts,
                    max_retries=self._max_retries,
                    error=outcome.error,
                )
                self._sleep(self._retry_delay_ms / 1000)

        self._log.info(
            "Step failed",
            instruction=step.instruction,
            attempts=outcome.attempts,
            error=outcome.error,
        )
        outcome.advance(StepStatus.EXHAUSTED_RETRIES)
        outcome.duration_ms = int((time.monotonic() - start_time) * 1000)
        return outcome

    def perform(self, driver: BrowserDriver, step: TestStep) -> tuple[bool, str]:
        """Run one attempt. Returns (passed, error message); may raise."""
        if step.is_comment:
            return True, ""

        target = step.target or ""

        match step.action:
            case StepAction.NAVIGATE:
                driver.navigate(target)
                return True, ""

            case StepAction.CLICK:
                result = driver.smart_click(target)
                if result.success:
                    return True, ""
                return False, f"Failed to click: {target}"

            case StepAction.FILL | StepAction.SELECT:
                driver.fill(target, step.value or "")
                return True, ""

            case StepAction.ASSERT:
                assertion = driver.assert_(step.instruction)
                if assertion.passed:
                    return True, ""
                return False, assertion.message or f"Assertion failed: {step.instruction}"

            case StepAction.WAIT:
                if step.target:
                    driver.wait_for_text(step.target, self._wait_for_text_timeout_ms)
                else:
                    self._sleep(float(step.value or "1"))
                return True, ""

            case StepAction.SCROLL:
                distance = self._scroll_distance_px
                driver.scroll_by(-distance if target.lower() == "up" else distance)
                return True, ""

            case StepAction.SCREENSHOT:
                driver.screenshot()
                return True, ""

            case _:
                result = driver.smart_click(step.target or step.instruction)
                if result.success:
                    return True, ""
                return False, f"Could not interpret: {step.instruction}"
