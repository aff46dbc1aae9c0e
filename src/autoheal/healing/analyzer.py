"""Failure analysis: classify, search the page, and suggest repairs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from autoheal.healing.alternatives import AlternativeTargetFinder
from autoheal.healing.classifier import FailureKind, classify_failure
from autoheal.healing.page_context import PageContext, PageContextSnapshotter
from autoheal.healing.suggestions import RepairSuggestion, generate_suggestions

if TYPE_CHECKING:
    from autoheal.dsl.models import TestStep
    from autoheal.driver import BrowserDriver

logger = structlog.get_logger(__name__)


@dataclass
class FailureAnalysis:
    """Diagnosis of one step that exhausted its retries."""

    step: TestStep
    error: str
    failure_kind: FailureKind
    target_selector: str | None = None
    alternative_selectors: list[str] = field(default_factory=list)
    page_context: PageContext = field(default_factory=PageContext.empty)
    suggestions: list[RepairSuggestion] = field(default_factory=list)

    @property
    def best_suggestion(self) -> RepairSuggestion | None:
        return self.suggestions[0] if self.suggestions else None


class FailureAnalyzer:
    """Runs the diagnostic pipeline for a failed step against the live page."""

    def __init__(
        self,
        finder: AlternativeTargetFinder | None = None,
        snapshotter: PageContextSnapshotter | None = None,
    ) -> None:
        self._finder = finder or AlternativeTargetFinder()
        self._snapshotter = snapshotter or PageContextSnapshotter()
        self._log = logger.bind(component="failure_analyzer")

    def analyze(self, driver: BrowserDriver, step: TestStep, error: str) -> FailureAnalysis:
        failure_kind = classify_failure(error, step)
        alternatives = self._finder.find(driver, step.target) if step.target else []
        page_context = self._snapshotter.capture(driver)

        suggestions = generate_suggestions(
            step,
            error,
            failure_kind,
            alternatives,
            page_context,
        )

        self._log.info(
            "Analyzed step failure",
            instruction=step.instruction,
            failure_kind=failure_kind,
            alternatives=len(alternatives),
            suggestions=len(suggestions),
        )

        return FailureAnalysis(
            step=step,
            error=error,
            failure_kind=failure_kind,
            target_selector=step.target,
            alternative_selectors=alternatives,
            page_context=page_context,
            suggestions=suggestions,
        )
