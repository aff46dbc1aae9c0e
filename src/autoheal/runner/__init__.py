"""
Test runner module with repair capabilities.

Executes natural language tests with:
- Fixed-backoff step retries
- Failure analysis on exhausted steps
- Optional auto-apply of the top suggestion
- Verification of repaired tests in a fresh session
"""

from autoheal.runner.orchestrator import (
    TestRepairOrchestrator,
    TestRepairResult,
    TestRunStatus,
)
from autoheal.runner.step_executor import StepExecutor, StepOutcome, StepStatus
from autoheal.runner.suite import SuiteRepairRunner, SuiteResult, SuiteSummary, summarize

__all__ = [
    # Step execution
    "StepExecutor",
    "StepOutcome",
    "StepStatus",
    # Orchestration
    "TestRepairOrchestrator",
    "TestRepairResult",
    "TestRunStatus",
    # Suites
    "SuiteRepairRunner",
    "SuiteResult",
    "SuiteSummary",
    "summarize",
]
