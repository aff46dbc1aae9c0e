"""
Rule-based repair suggestions for failed steps.

A deterministic table keyed by FailureKind. The confidence constants and the
emission order are part of the contract: suggestions are returned sorted by
confidence, and equal confidences keep emission order.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from autoheal.dsl.models import StepAction
from autoheal.healing.alternatives import candidate_label
from autoheal.healing.classifier import FailureKind

if TYPE_CHECKING:
    from autoheal.dsl.models import TestStep
    from autoheal.healing.page_context import PageContext


class SuggestionType(StrEnum):
    """Kind of edit a suggestion proposes."""

    SELECTOR_UPDATE = "selector_update"
    ADD_WAIT = "add_wait"
    ASSERTION_UPDATE = "assertion_update"
    CHANGE_ACTION = "change_action"
    SKIP_STEP = "skip_step"


@dataclass(frozen=True, slots=True)
class RepairSuggestion:
    """A proposed edit to a failing step."""

    type: SuggestionType
    confidence: float
    description: str
    original_instruction: str
    suggested_instruction: str
    reasoning: str

    @property
    def final_instruction(self) -> str:
        """The line that replaces the failing step when auto-applied."""
        return self.suggested_instruction.rstrip().splitlines()[-1]


MAX_SELECTOR_SUGGESTIONS = 3
MIN_ASSERTION_TEXT_LENGTH = 3
MAX_ASSERTION_TEXT_LENGTH = 30


def generate_suggestions(
    step: TestStep,
    error: str,
    failure_kind: FailureKind,
    alternatives: list[str],
    page_context: PageContext,
) -> list[RepairSuggestion]:
    """Build confidence-ranked suggestions for a failed step."""
    instruction = step.instruction
    suggestions: list[RepairSuggestion] = []

    match failure_kind:
        case FailureKind.SELECTOR_NOT_FOUND:
            for alt in alternatives[:MAX_SELECTOR_SUGGESTIONS]:
                suggestions.append(
                    RepairSuggestion(
                        type=SuggestionType.SELECTOR_UPDATE,
                        confidence=0.7,
                        description=f'Update selector to "{alt}"',
                        original_instruction=instruction,
                        suggested_instruction=f"click {candidate_label(alt)}",
                        reasoning=f"Found similar element on page: {alt}",
                    )
                )

            if not suggestions:
                suggestions.append(
                    RepairSuggestion(
                        type=SuggestionType.ADD_WAIT,
                        confidence=0.5,
                        description="Add wait before this step",
                        original_instruction=instruction,
                        suggested_instruction=f"wait 2 seconds\n{instruction}",
                        reasoning="Element might not be loaded yet - adding wait may help",
                    )
                )

        case FailureKind.ASSERTION_FAILED:
            if step.action == StepAction.ASSERT and page_context.visible_text:
                possible_text = next(
                    (
                        t
                        for t in page_context.visible_text
                        if MIN_ASSERTION_TEXT_LENGTH < len(t) < MAX_ASSERTION_TEXT_LENGTH
                    ),
                    None,
                )
                if possible_text:
                    suggestions.append(
                        RepairSuggestion(
                            type=SuggestionType.ASSERTION_UPDATE,
                            confidence=0.6,
                            description="Update assertion to check for visible text",
                            original_instruction=instruction,
                            suggested_instruction=f'verify page contains "{possible_text}"',
                            reasoning=(
                                f'Page contains "{possible_text}" which might be the intended check'
                            ),
                        )
                    )

            if page_context.url:
                url_path = urlparse(page_context.url).path or "/"
                suggestions.append(
                    RepairSuggestion(
                        type=SuggestionType.ASSERTION_UPDATE,
                        confidence=0.5,
                        description="Assert URL instead of content",
                        original_instruction=instruction,
                        suggested_instruction=f'verify url contains "{url_path}"',
                        reasoning=f"Current URL is {page_context.url}",
                    )
                )

        case FailureKind.TIMEOUT:
            suggestions.append(
                RepairSuggestion(
                    type=SuggestionType.ADD_WAIT,
                    confidence=0.7,
                    description="Increase wait time",
                    original_instruction=instruction,
                    suggested_instruction=f"wait 5 seconds\n{instruction}",
                    reasoning="Operation timed out - page may need more time to load",
                )
            )

        case FailureKind.ELEMENT_NOT_INTERACTABLE:
            suggestions.append(
                RepairSuggestion(
                    type=SuggestionType.ADD_WAIT,
                    confidence=0.6,
                    description="Wait for element to become interactive",
                    original_instruction=instruction,
                    suggested_instruction=f"wait 2 seconds\n{instruction}",
                    reasoning="Element exists but is not interactable - may need to wait",
                )
            )
            suggestions.append(
                RepairSuggestion(
                    type=SuggestionType.CHANGE_ACTION,
                    confidence=0.5,
                    description="Scroll element into view first",
                    original_instruction=instruction,
                    suggested_instruction=f"scroll down\n{instruction}",
                    reasoning="Element might be outside viewport",
                )
            )

        case _:
            suggestions.append(
                RepairSuggestion(
                    type=SuggestionType.SKIP_STEP,
                    confidence=0.3,
                    description="Skip this step",
                    original_instruction=instruction,
                    suggested_instruction=f"// SKIPPED: {instruction}",
                    reasoning="Unable to determine a fix - consider removing this step",
                )
            )

    # sorted() is stable, so ties keep emission order.
    return sorted(suggestions, key=lambda s: s.confidence, reverse=True)
