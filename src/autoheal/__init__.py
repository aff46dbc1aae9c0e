"""
autoheal: self-healing natural language browser tests.

Runs plain-English test steps against a browser driver, retries failing
steps, diagnoses the ones that still fail, and proposes or applies repairs.
"""

__version__ = "1.0.0"

from autoheal.config import RepairConfig, load_repair_config
from autoheal.driver import AssertResult, BrowserDriver, ClickResult, DriverFactory, open_session
from autoheal.dsl.models import StepAction, TestCase, TestStep, TestSuite
from autoheal.dsl.parser import SuiteParser, parse_instruction, parse_suite_text
from autoheal.errors import AutoHealError, ConfigError, DriverSessionError, InstructionParseError
from autoheal.healing.analyzer import FailureAnalysis, FailureAnalyzer
from autoheal.healing.classifier import FailureKind, classify_failure
from autoheal.healing.suggestions import RepairSuggestion, SuggestionType
from autoheal.reporting import export_repaired_test, format_repair_report, suite_to_json
from autoheal.runner.orchestrator import TestRepairOrchestrator, TestRepairResult
from autoheal.runner.suite import SuiteRepairRunner, SuiteResult, SuiteSummary

__all__ = [
    "__version__",
    # Config
    "RepairConfig",
    "load_repair_config",
    # Driver contract
    "BrowserDriver",
    "DriverFactory",
    "ClickResult",
    "AssertResult",
    "open_session",
    # DSL
    "StepAction",
    "TestStep",
    "TestCase",
    "TestSuite",
    "SuiteParser",
    "parse_instruction",
    "parse_suite_text",
    # Errors
    "AutoHealError",
    "ConfigError",
    "DriverSessionError",
    "InstructionParseError",
    # Healing
    "FailureKind",
    "classify_failure",
    "FailureAnalysis",
    "FailureAnalyzer",
    "RepairSuggestion",
    "SuggestionType",
    # Runner
    "TestRepairOrchestrator",
    "TestRepairResult",
    "SuiteRepairRunner",
    "SuiteResult",
    "SuiteSummary",
    # Reporting
    "format_repair_report",
    "export_repaired_test",
    "suite_to_json",
]
