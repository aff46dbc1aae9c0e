"""
Failure diagnosis for steps that exhausted their retries.

Deterministic only:
- Lexical failure classification
- Alternative target search over the live page
- Bounded page context snapshot
- Rule-based repair suggestions ranked by confidence
"""

from autoheal.healing.alternatives import AlternativeTargetFinder
from autoheal.healing.analyzer import FailureAnalysis, FailureAnalyzer
from autoheal.healing.classifier import FailureKind, classify_failure
from autoheal.healing.page_context import PageContext, PageContextSnapshotter
from autoheal.healing.suggestions import RepairSuggestion, SuggestionType, generate_suggestions

__all__ = [
    "AlternativeTargetFinder",
    "FailureAnalysis",
    "FailureAnalyzer",
    "FailureKind",
    "classify_failure",
    "PageContext",
    "PageContextSnapshotter",
    "RepairSuggestion",
    "SuggestionType",
    "generate_suggestions",
]
