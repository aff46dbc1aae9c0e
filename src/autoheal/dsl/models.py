"""
Pydantic models for natural language test definitions.

Steps and test cases are immutable value objects. Repairs never edit a
TestCase in place; they build a new one.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StepAction(StrEnum):
    """Actions a natural language instruction can resolve to."""

    NAVIGATE = "navigate"
    CLICK = "click"
    FILL = "fill"
    SELECT = "select"
    SCROLL = "scroll"
    WAIT = "wait"
    ASSERT = "assert"
    SCREENSHOT = "screenshot"
    UNKNOWN = "unknown"


class AssertionType(StrEnum):
    """Shape of an assertion instruction."""

    CONTAINS = "contains"
    EQUALS = "equals"
    EXISTS = "exists"
    COUNT = "count"


class AssertionSubject(StrEnum):
    """What an assertion instruction checks."""

    URL = "url"
    TITLE = "title"
    CONTENT = "content"
    ELEMENT = "element"
    COUNT = "count"


COMMENT_PREFIX = "//"


class TestStep(BaseModel):
    """A single test action derived from a natural language instruction."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    action: StepAction = StepAction.UNKNOWN
    target: str | None = None
    value: str | None = None
    instruction: str
    assertion_type: AssertionType | None = None
    assertion_subject: AssertionSubject | None = None

    @field_validator("instruction")
    @classmethod
    def validate_instruction(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("instruction cannot be empty")
        return v

    @property
    def is_comment(self) -> bool:
        """True for commented-out (skipped) steps."""
        return self.instruction.lstrip().startswith(COMMENT_PREFIX)


class TestCase(BaseModel):
    """An ordered sequence of steps under a name."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    steps: tuple[TestStep, ...] = ()

    def instructions(self) -> list[str]:
        return [step.instruction for step in self.steps]

    def with_steps(self, steps: list[TestStep] | tuple[TestStep, ...]) -> TestCase:
        """Return a copy of this test with a different step sequence."""
        return TestCase(name=self.name, description=self.description, steps=tuple(steps))


class TestSuite(BaseModel):
    """A named collection of test cases, run one after another."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, max_length=200)
    tests: tuple[TestCase, ...] = ()

