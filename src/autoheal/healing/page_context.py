"""Bounded snapshot of the live page for failure diagnostics."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from autoheal.driver import BrowserDriver

logger = structlog.get_logger(__name__)


CAPTURE_CONTEXT_SCRIPT = """
() => {
  const visibleText = [];
  document.querySelectorAll("button, a, [role='button']").forEach((el) => {
    const text = (el.textContent || "").trim();
    if (text) visibleText.push(text);
  });
  return { url: window.location.href, title: document.title, visibleText };
}
"""


@dataclass(frozen=True, slots=True)
class PageContext:
    """URL, title and a short sample of interactive text on the page."""

    url: str = ""
    title: str = ""
    visible_text: tuple[str, ...] = ()

    @classmethod
    def empty(cls) -> PageContext:
        return cls()


class PageContextSnapshotter:
    """Captures a PageContext in a single page query."""

    def __init__(self, max_entries: int = 20, max_entry_length: int = 50) -> None:
        self._max_entries = max_entries
        self._max_entry_length = max_entry_length
        self._log = logger.bind(component="page_context")

    def capture(self, driver: BrowserDriver) -> PageContext:
        """Snapshot the page; falls back to an empty context on any error."""
        try:
            payload = driver.evaluate(CAPTURE_CONTEXT_SCRIPT)
            return PageContext(
                url=str(payload.get("url") or ""),
                title=str(payload.get("title") or ""),
                visible_text=self._bounded_text(payload.get("visibleText") or []),
            )
        except Exception as e:
            self._log.debug("Page context capture failed", error=str(e))
            return PageContext.empty()

    def _bounded_text(self, raw: list[str]) -> tuple[str, ...]:
        # Long entries are paragraphs, not labels.
        kept = (
            text.strip()
            for text in raw
            if isinstance(text, str) and text.strip() and len(text.strip()) < self._max_entry_length
        )
        return tuple(dict.fromkeys(kept))[: self._max_entries]
