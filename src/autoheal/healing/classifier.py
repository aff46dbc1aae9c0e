"""Lexical classification of step failure messages."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from autoheal.dsl.models import TestStep


class FailureKind(StrEnum):
    """Category of a step execution failure."""

    SELECTOR_NOT_FOUND = "selector_not_found"
    ASSERTION_FAILED = "assertion_failed"
    TIMEOUT = "timeout"
    NAVIGATION_FAILED = "navigation_failed"
    ELEMENT_NOT_INTERACTABLE = "element_not_interactable"
    UNKNOWN = "unknown"


# Checked in order; the first kind with a matching phrase wins.
FAILURE_PHRASES: tuple[tuple[FailureKind, tuple[str, ...]], ...] = (
    (FailureKind.SELECTOR_NOT_FOUND, ("not found", "no element", "failed to click")),
    (FailureKind.ASSERTION_FAILED, ("assertion", "verify", "expected")),
    (FailureKind.TIMEOUT, ("timeout", "timed out")),
    (FailureKind.NAVIGATION_FAILED, ("navigation", "navigate", "url")),
    (FailureKind.ELEMENT_NOT_INTERACTABLE, ("not interactable", "disabled", "hidden")),
)


def classify_failure(error: str, step: TestStep | None = None) -> FailureKind:
    """
    Classify an error message into a FailureKind.

    The step is accepted for interface symmetry but does not influence the
    result: the same error text always classifies the same way.
    """
    lowered = (error or "").lower()
    for kind, phrases in FAILURE_PHRASES:
        if any(phrase in lowered for phrase in phrases):
            return kind
    return FailureKind.UNKNOWN
