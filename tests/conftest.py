"""Pytest fixtures for autoheal tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from autoheal.driver import AssertResult, ClickResult
from autoheal.healing.alternatives import COLLECT_CANDIDATES_SCRIPT
from autoheal.healing.page_context import CAPTURE_CONTEXT_SCRIPT
from autoheal.runner.step_executor import StepExecutor


class FakeDriver:
    """
    Scripted BrowserDriver.

    - ``clickable``: targets that smart_click succeeds on (case-insensitive)
    - ``raise_on_miss``: smart_click raises instead of reporting a miss
    - ``failing_asserts``: instruction -> failure message
    - ``errors``: method name -> exception raised on every call
    - ``candidates`` / ``context``: payloads returned by the page scripts
    """

    def __init__(
        self,
        clickable: set[str] | None = None,
        failing_asserts: dict[str, str] | None = None,
        errors: dict[str, Exception] | None = None,
        candidates: dict[str, Any] | None = None,
        context: dict[str, Any] | None = None,
        close_error: Exception | None = None,
        raise_on_miss: bool = False,
    ) -> None:
        self.clickable = {t.lower() for t in (clickable or set())}
        self.failing_asserts = failing_asserts or {}
        self.errors = errors or {}
        self.candidates = candidates or {"buttons": [], "links": [], "inputs": [], "aria": []}
        self.context = context or {"url": "", "title": "", "visibleText": []}
        self.close_error = close_error
        self.raise_on_miss = raise_on_miss
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.closed = False

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if name in self.errors:
            raise self.errors[name]

    def calls_to(self, name: str) -> list[tuple[Any, ...]]:
        return [args for call, args in self.calls if call == name]

    def navigate(self, url: str) -> None:
        self._record("navigate", url)

    def smart_click(self, target: str) -> ClickResult:
        self._record("smart_click", target)
        if target.lower() in self.clickable:
            return ClickResult(success=True)
        if self.raise_on_miss:
            raise LookupError(f"element not found: {target}")
        return ClickResult(success=False, message=f"No element found for '{target}'")

    def fill(self, target: str, value: str) -> None:
        self._record("fill", target, value)

    def assert_(self, instruction: str) -> AssertResult:
        self._record("assert_", instruction)
        if instruction in self.failing_asserts:
            return AssertResult(passed=False, message=self.failing_asserts[instruction])
        return AssertResult(passed=True)

    def scroll_by(self, direction: int) -> None:
        self._record("scroll_by", direction)

    def screenshot(self) -> bytes:
        self._record("screenshot")
        return b"png"

    def wait_for_text(self, text: str, timeout_ms: int) -> None:
        self._record("wait_for_text", text, timeout_ms)

    def evaluate(self, script: str, *args: Any) -> Any:
        self._record("evaluate", script)
        if script == COLLECT_CANDIDATES_SCRIPT:
            return self.candidates
        if script == CAPTURE_CONTEXT_SCRIPT:
            return self.context
        return None

    def close(self) -> None:
        self.calls.append(("close", ()))
        self.closed = True
        if self.close_error:
            raise self.close_error


class FakeDriverFactory:
    """DriverFactory that builds a new FakeDriver per session and keeps them."""

    def __init__(self, **driver_kwargs: Any) -> None:
        self.driver_kwargs = driver_kwargs
        self.drivers: list[FakeDriver] = []

    def __call__(self) -> FakeDriver:
        driver = FakeDriver(**self.driver_kwargs)
        self.drivers.append(driver)
        return driver


@pytest.fixture
def fake_driver() -> FakeDriver:
    """A driver on which every action passes and clicks miss."""
    return FakeDriver()


@pytest.fixture
def make_factory() -> Callable[..., FakeDriverFactory]:
    """Build a FakeDriverFactory with scripted driver behaviour."""
    return FakeDriverFactory


@pytest.fixture
def sleeps() -> list[float]:
    """Backoff sleeps recorded by fast_executor, in seconds."""
    return []


@pytest.fixture
def fast_executor(sleeps: list[float]) -> StepExecutor:
    """Step executor that records backoff sleeps instead of sleeping."""
    return StepExecutor(max_retries=3, retry_delay_ms=500, sleep=sleeps.append)


@pytest.fixture
def sample_suite_text() -> str:
    """Sample natural language suite."""
    return """
# Test: Login Flow
go to https://example.com/login
click the login button
type "user@example.com" in email field
verify url contains "/dashboard"

// commented lines are ignored
# Test: Search
go to https://example.com
type "test query" in search box
verify page contains "results"
"""


@pytest.fixture
def sample_suite_yaml() -> str:
    """Sample YAML suite."""
    return """
name: Checkout Suite
tests:
  - name: Checkout
    description: Buy one item
    steps:
      - go to https://shop.example.com
      - click "Add to cart"
      - verify page contains "1 item"
  - name: Empty cart
    steps:
      - go to https://shop.example.com/cart
      - verify page contains "Your cart is empty"
"""


@pytest.fixture
def suite_file(tmp_path: Path, sample_suite_text: str) -> Path:
    """Sample suite written to a .txt file."""
    path = tmp_path / "smoke.txt"
    path.write_text(sample_suite_text, encoding="utf-8")
    return path
