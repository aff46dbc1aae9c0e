"""
Browser driver contract consumed by the repair engine.

The engine never talks to a browser engine directly. Anything implementing
BrowserDriver (a Playwright adapter, a remote browser client, a scripted fake
in tests) can be plugged in through a DriverFactory.
"""

from __future__ import annotations

import contextlib
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import structlog

from autoheal.errors import DriverSessionError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ClickResult:
    """Outcome of a best-effort click."""

    success: bool
    message: str = ""


@dataclass(frozen=True, slots=True)
class AssertResult:
    """Outcome of a natural language assertion."""

    passed: bool
    message: str = ""


@runtime_checkable
class BrowserDriver(Protocol):
    """Fixed capability set the engine uses. Every call may raise."""

    def navigate(self, url: str) -> None: ...

    def smart_click(self, target: str) -> ClickResult: ...

    def fill(self, target: str, value: str) -> None: ...

    def assert_(self, instruction: str) -> AssertResult: ...

    def scroll_by(self, direction: int) -> None: ...

    def screenshot(self) -> Any: ...

    def wait_for_text(self, text: str, timeout_ms: int) -> None: ...

    def evaluate(self, script: str, *args: Any) -> Any: ...

    def close(self) -> None: ...


DriverFactory = Callable[[], BrowserDriver]


@contextlib.contextmanager
def open_session(factory: DriverFactory) -> Iterator[BrowserDriver]:
    """
    Acquire a driver session and release it on exit.

    Failure to acquire raises DriverSessionError. The driver is closed
    whether the body passes, fails or raises; close errors are logged and
    dropped.
    """
    try:
        driver = factory()
    except Exception as e:
        logger.error("Failed to acquire driver session", error=str(e))
        raise DriverSessionError(str(e)) from e

    try:
        yield driver
    finally:
        try:
            driver.close()
        except Exception as e:
            logger.warning("Failed to close driver session", error=str(e))
