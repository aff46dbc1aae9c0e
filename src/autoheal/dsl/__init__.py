"""Natural language test model and parser."""

from autoheal.dsl.models import (
    AssertionSubject,
    AssertionType,
    StepAction,
    TestCase,
    TestStep,
    TestSuite,
)
from autoheal.dsl.parser import SuiteParser, parse_instruction, parse_suite_text

__all__ = [
    "AssertionSubject",
    "AssertionType",
    "StepAction",
    "TestStep",
    "TestCase",
    "TestSuite",
    "SuiteParser",
    "parse_instruction",
    "parse_suite_text",
]
