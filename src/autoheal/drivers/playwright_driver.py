"""
Playwright adapter for the BrowserDriver protocol.

Uses the synchronous Playwright API. Elements are located the way a person
describes them: by accessible role and name first, then label, placeholder,
name attribute and finally visible text.
"""

from __future__ import annotations

import contextlib
import re
from typing import TYPE_CHECKING, Any

import structlog
from playwright.sync_api import sync_playwright

from autoheal.driver import AssertResult, ClickResult
from autoheal.dsl.models import AssertionSubject, AssertionType
from autoheal.dsl.parser import parse_instruction

if TYPE_CHECKING:
    from playwright.sync_api import Browser, Locator, Page, Playwright

logger = structlog.get_logger(__name__)

ACTION_TIMEOUT_MS = 5000
NAVIGATION_TIMEOUT_MS = 30000

# Trailing words people use to describe an element, not part of its name.
_DESCRIPTOR_SUFFIX = re.compile(r"\s+(?:button|link|field|input|box|dropdown|tab|icon)$", re.I)


def _name_pattern(target: str) -> re.Pattern[str]:
    return re.compile(re.escape(target), re.IGNORECASE)


def _strip_descriptor(target: str) -> str:
    stripped = _DESCRIPTOR_SUFFIX.sub("", target.strip())
    return stripped or target.strip()


def _compare(actual: str, expected: str, assertion_type: AssertionType | None) -> bool:
    if assertion_type == AssertionType.EQUALS:
        return actual.strip() == expected
    return expected.lower() in actual.lower()


class PlaywrightDriver:
    """BrowserDriver implementation over a single Playwright page."""

    def __init__(
        self,
        playwright: Playwright,
        browser: Browser,
        page: Page,
        action_timeout_ms: int = ACTION_TIMEOUT_MS,
    ) -> None:
        self._playwright = playwright
        self._browser = browser
        self._page = page
        self._action_timeout_ms = action_timeout_ms
        self._log = logger.bind(component="playwright_driver")

    @classmethod
    def launch(cls, headless: bool = True) -> PlaywrightDriver:
        """Start Playwright and open a fresh chromium page."""
        playwright = sync_playwright().start()
        try:
            browser = playwright.chromium.launch(headless=headless)
            context = browser.new_context(viewport={"width": 1366, "height": 900})
            page = context.new_page()
        except Exception:
            playwright.stop()
            raise
        return cls(playwright, browser, page)

    def navigate(self, url: str) -> None:
        self._log.debug("Navigating", url=url)
        self._page.goto(url, timeout=NAVIGATION_TIMEOUT_MS, wait_until="domcontentloaded")

    def smart_click(self, target: str) -> ClickResult:
        locator = self._first_visible(self._click_candidates(target))
        if locator is None:
            return ClickResult(success=False, message=f"No element found for '{target}'")
        locator.click(timeout=self._action_timeout_ms)
        return ClickResult(success=True)

    def fill(self, target: str, value: str) -> None:
        locator = self._first_visible(self._input_candidates(target))
        if locator is None:
            raise LookupError(f"Input not found: {target}")
        if locator.evaluate("(el) => el.tagName.toLowerCase()") == "select":
            locator.select_option(label=value, timeout=self._action_timeout_ms)
        else:
            locator.fill(value, timeout=self._action_timeout_ms)

    def assert_(self, instruction: str) -> AssertResult:
        step = parse_instruction(instruction)
        expected = step.target or ""
        subject = step.assertion_subject or AssertionSubject.CONTENT

        match subject:
            case AssertionSubject.ELEMENT:
                passed = self._first_visible(self._click_candidates(expected)) is not None
            case AssertionSubject.COUNT:
                count = self._page.get_by_text(_name_pattern(_strip_descriptor(expected))).count()
                passed = count == int(step.value or "0")
            case AssertionSubject.URL:
                passed = _compare(self._page.url, expected, step.assertion_type)
            case AssertionSubject.TITLE:
                passed = _compare(self._page.title(), expected, step.assertion_type)
            case _:
                passed = _compare(self._page.inner_text("body"), expected, step.assertion_type)

        if passed:
            return AssertResult(passed=True)
        return AssertResult(
            passed=False,
            message=f"Expected {subject} to match '{expected}' ({step.assertion_type})",
        )

    def scroll_by(self, direction: int) -> None:
        self._page.mouse.wheel(0, direction)

    def screenshot(self) -> bytes:
        return self._page.screenshot(full_page=True)

    def wait_for_text(self, text: str, timeout_ms: int) -> None:
        self._page.get_by_text(text).first.wait_for(state="visible", timeout=timeout_ms)

    def evaluate(self, script: str, *args: Any) -> Any:
        if args:
            return self._page.evaluate(script, args[0] if len(args) == 1 else list(args))
        return self._page.evaluate(script)

    def close(self) -> None:
        try:
            self._browser.close()
        finally:
            with contextlib.suppress(Exception):
                self._playwright.stop()

    def _click_candidates(self, target: str) -> list[Locator]:
        name = _name_pattern(_strip_descriptor(target))
        page = self._page
        return [
            page.get_by_role("button", name=name),
            page.get_by_role("link", name=name),
            page.get_by_role("menuitem", name=name),
            page.get_by_label(name),
            page.get_by_text(name),
        ]

    def _input_candidates(self, target: str) -> list[Locator]:
        stripped = _strip_descriptor(target)
        name = _name_pattern(stripped)
        page = self._page
        return [
            page.get_by_label(name),
            page.get_by_placeholder(name),
            page.locator(f"[name={stripped!r}]"),
            page.get_by_role("textbox", name=name),
            page.get_by_role("combobox", name=name),
        ]

    def _first_visible(self, candidates: list[Locator]) -> Locator | None:
        for locator in candidates:
            first = locator.first
            with contextlib.suppress(Exception):
                if locator.count() > 0 and first.is_visible():
                    return first
        return None


def playwright_driver_factory(headless: bool = True):
    """Return a DriverFactory that launches a new chromium page per session."""

    def factory() -> PlaywrightDriver:
        return PlaywrightDriver.launch(headless=headless)

    return factory
