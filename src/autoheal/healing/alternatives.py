"""
Alternative target discovery for failed steps.

Searches the live page (whole DOM) for elements whose visible text, labels,
placeholders, names or aria-labels overlap the target that could not be
found. Matching is plain case-insensitive substring containment in either
direction; no stemming or edit distance, so results are reproducible.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from autoheal.driver import BrowserDriver

logger = structlog.get_logger(__name__)


# Collects raw candidate data in one round trip; matching happens in Python.
COLLECT_CANDIDATES_SCRIPT = """
() => {
  const text = (el) => (el.textContent || "").trim();
  const buttons = [];
  document.querySelectorAll(
    "button, [role='button'], input[type='submit'], input[type='button']"
  ).forEach((el) => buttons.push(text(el) || el.value || ""));

  const links = [];
  document.querySelectorAll("a").forEach((el) => links.push(text(el)));

  const inputs = [];
  document.querySelectorAll("input, textarea, select").forEach((el) => {
    const label = el.id ? document.querySelector(`label[for="${el.id}"]`) : null;
    inputs.push({
      placeholder: el.placeholder || "",
      label: label ? text(label) : "",
      name: el.name || "",
    });
  });

  const aria = [];
  document.querySelectorAll("[aria-label]").forEach((el) => {
    aria.push({ tag: el.tagName.toLowerCase(), label: el.getAttribute("aria-label") || "" });
  });

  return { buttons, links, inputs, aria };
}
"""

CANDIDATE_PREFIX_PATTERN = re.compile(r"^(button|link|input|aria):\s*")
QUOTED_LABEL_PATTERN = re.compile(r'"(.*)"\s*$')


def overlaps(text: str, target: str) -> bool:
    """Two-way case-insensitive containment; empty strings never match."""
    text_lower = text.strip().lower()
    target_lower = target.strip().lower()
    if not text_lower or not target_lower:
        return False
    return target_lower in text_lower or text_lower in target_lower


def candidate_label(candidate: str) -> str:
    """Extract the human-readable label from a candidate string.

    ``button: "Submit Order"`` -> ``Submit Order``,
    ``aria:div/"Close"`` -> ``Close``.
    """
    match = QUOTED_LABEL_PATTERN.search(candidate)
    if match:
        return match.group(1).strip()
    return CANDIDATE_PREFIX_PATTERN.sub("", candidate).replace('"', "").strip()


class AlternativeTargetFinder:
    """Finds elements on the current page that may replace a failed target."""

    MAX_RESULTS = 10

    def __init__(self, max_results: int = MAX_RESULTS) -> None:
        self._max_results = max_results
        self._log = logger.bind(component="alternative_finder")

    def find(self, driver: BrowserDriver, target: str) -> list[str]:
        """
        Return up to ``max_results`` distinct candidate strings.

        Order is buttons, links, inputs, then aria-labelled elements. Never
        raises: any page query failure yields an empty list.
        """
        if not target or not target.strip():
            return []

        try:
            payload = driver.evaluate(COLLECT_CANDIDATES_SCRIPT)
            candidates = self.match_candidates(payload, target)
        except Exception as e:
            self._log.debug("Alternative target search failed", target=target, error=str(e))
            return []

        self._log.debug("Found alternative targets", target=target, count=len(candidates))
        return candidates

    def match_candidates(self, payload: dict[str, Any], target: str) -> list[str]:
        """Filter a collected page payload down to labelled candidates."""
        results: list[str] = []

        for text in payload.get("buttons") or []:
            if overlaps(text or "", target):
                results.append(f'button: "{text.strip()}"')

        for text in payload.get("links") or []:
            if overlaps(text or "", target):
                results.append(f'link: "{text.strip()}"')

        for field in payload.get("inputs") or []:
            placeholder = field.get("placeholder") or ""
            label = (field.get("label") or "").strip()
            name = field.get("name") or ""
            if overlaps(placeholder, target):
                results.append(f'input with placeholder "{placeholder}"')
            if overlaps(label, target):
                results.append(f'input labeled "{label}"')
            if overlaps(name, target):
                results.append(f'input named "{name}"')

        for element in payload.get("aria") or []:
            label = element.get("label") or ""
            if overlaps(label, target):
                results.append(f'aria:{element.get("tag", "")}/"{label}"')

        return list(dict.fromkeys(results))[: self._max_results]
