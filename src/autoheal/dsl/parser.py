"""
Parser for natural language test instructions and suites.

Turns plain-English lines ("click the login button", "verify url contains
'/dashboard'") into structured steps, and suite files (plain text or YAML)
into TestSuite objects.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from autoheal.dsl.models import (
    COMMENT_PREFIX,
    AssertionSubject,
    AssertionType,
    StepAction,
    TestCase,
    TestStep,
    TestSuite,
)
from autoheal.errors import InstructionParseError

logger = structlog.get_logger(__name__)

_I = re.IGNORECASE

NAVIGATE_PATTERN = re.compile(r"^(?:go to|navigate to|open|visit)\s+(.+)$", _I)
CLICK_PATTERN = re.compile(r"^(?:click|tap|press)\s+(?:on\s+)?(?:the\s+)?(.+)$", _I)
TYPE_PATTERN = re.compile(
    r"^(?:type|enter)\s+['\"](.+?)['\"]\s+(?:in|into)\s+(?:the\s+)?(.+)$", _I
)
FILL_PATTERN = re.compile(r"^fill\s+(?:the\s+)?(.+?)\s+with\s+['\"](.+?)['\"]$", _I)
SELECT_PATTERN = re.compile(
    r"^select\s+['\"](.+?)['\"]\s+(?:from|in)\s+(?:the\s+)?(.+)$", _I
)
SCROLL_PATTERN = re.compile(
    r"^scroll\s+(up|down|left|right)(?:\s+(\d+)\s+(?:times|pixels))?$", _I
)
WAIT_SECONDS_PATTERN = re.compile(r"^wait\s+(?:for\s+)?(\d+(?:\.\d+)?)\s*(?:seconds?|s)$", _I)
WAIT_FOR_TEXT_PATTERN = re.compile(
    r"^wait\s+(?:for|until)\s+['\"](.+?)['\"]\s+(?:appears?|is visible|shows?)$", _I
)
SCREENSHOT_PATTERN = re.compile(
    r"^(?:take\s+(?:a\s+)?screenshot|screenshot|capture\s+(?:the\s+)?(?:page|screen))$", _I
)

_VERB = r"^(?:verify|assert|check|ensure)\s+(?:that\s+)?"

# (pattern, assertion type, what the assertion checks)
ASSERT_PATTERNS: list[tuple[re.Pattern[str], AssertionType, AssertionSubject]] = [
    (
        re.compile(_VERB + r"(?:the\s+)?(?:page\s+)?title\s+(?:contains?|has|includes?)\s+['\"]?(.+?)['\"]?$", _I),
        AssertionType.CONTAINS,
        AssertionSubject.TITLE,
    ),
    (
        re.compile(_VERB + r"(?:the\s+)?(?:page\s+)?title\s+(?:is|equals?)\s+['\"]?(.+?)['\"]?$", _I),
        AssertionType.EQUALS,
        AssertionSubject.TITLE,
    ),
    (
        re.compile(_VERB + r"(?:the\s+)?url\s+(?:contains?|has|includes?)\s+['\"]?(.+?)['\"]?$", _I),
        AssertionType.CONTAINS,
        AssertionSubject.URL,
    ),
    (
        re.compile(_VERB + r"(?:the\s+)?url\s+(?:is|equals?)\s+['\"]?(.+?)['\"]?$", _I),
        AssertionType.EQUALS,
        AssertionSubject.URL,
    ),
    (
        re.compile(_VERB + r"(?:the\s+)?(?:page\s+)?(?:contains?|has|shows?|includes?)\s+['\"]?(.+?)['\"]?$", _I),
        AssertionType.CONTAINS,
        AssertionSubject.CONTENT,
    ),
    (
        re.compile(_VERB + r"['\"]?(.+?)['\"]?\s+(?:is\s+)?(?:visible|displayed|shown|present)$", _I),
        AssertionType.CONTAINS,
        AssertionSubject.CONTENT,
    ),
    (
        re.compile(_VERB + r"['\"]?(.+?)['\"]?\s+exists?$", _I),
        AssertionType.EXISTS,
        AssertionSubject.ELEMENT,
    ),
    (
        re.compile(_VERB + r"(?:there\s+is\s+)?(?:a|an)\s+['\"]?(.+?)['\"]?$", _I),
        AssertionType.EXISTS,
        AssertionSubject.ELEMENT,
    ),
    (
        re.compile(_VERB + r"(?:there\s+are\s+)?(\d+)\s+(.+?)$", _I),
        AssertionType.COUNT,
        AssertionSubject.COUNT,
    ),
]

TEST_HEADER_PATTERN = re.compile(r"^(?:#+\s*)?(?:test:\s*)?(.*)$", _I)


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        return value[1:-1].strip()
    return value


def parse_instruction(instruction: str) -> TestStep:
    """
    Parse a single natural language instruction into a TestStep.

    Supported patterns:
    - "go to https://..." / "navigate to https://..." / "open https://..."
    - "click [the] <target>" / "press <target>"
    - "type '<value>' in[to] <target>" / "fill <target> with '<value>'"
    - "select '<option>' from <dropdown>"
    - "scroll down/up"
    - "wait [for] <seconds> seconds" / "wait for '<text>' to appear"
    - "verify <assertion>" / "assert <assertion>" / "check <assertion>"
    - "take screenshot"

    Anything else becomes an UNKNOWN step targeting the whole instruction.
    """
    text = instruction.strip()

    if text.startswith(COMMENT_PREFIX):
        return TestStep(instruction=text, action=StepAction.UNKNOWN)

    if match := NAVIGATE_PATTERN.match(text):
        return TestStep(
            instruction=text,
            action=StepAction.NAVIGATE,
            target=_unquote(match.group(1)),
        )

    if match := CLICK_PATTERN.match(text):
        return TestStep(
            instruction=text,
            action=StepAction.CLICK,
            target=_unquote(match.group(1)),
        )

    if match := TYPE_PATTERN.match(text):
        return TestStep(
            instruction=text,
            action=StepAction.FILL,
            value=match.group(1),
            target=match.group(2).strip(),
        )

    if match := FILL_PATTERN.match(text):
        return TestStep(
            instruction=text,
            action=StepAction.FILL,
            target=match.group(1).strip(),
            value=match.group(2),
        )

    if match := SELECT_PATTERN.match(text):
        return TestStep(
            instruction=text,
            action=StepAction.SELECT,
            value=match.group(1),
            target=match.group(2).strip(),
        )

    if match := SCROLL_PATTERN.match(text):
        return TestStep(
            instruction=text,
            action=StepAction.SCROLL,
            target=match.group(1).lower(),
            value=match.group(2) or "3",
        )

    if match := WAIT_SECONDS_PATTERN.match(text):
        return TestStep(
            instruction=text,
            action=StepAction.WAIT,
            value=match.group(1),
        )

    if match := WAIT_FOR_TEXT_PATTERN.match(text):
        return TestStep(
            instruction=text,
            action=StepAction.WAIT,
            target=match.group(1),
        )

    for pattern, assertion_type, subject in ASSERT_PATTERNS:
        if match := pattern.match(text):
            is_count = subject == AssertionSubject.COUNT
            return TestStep(
                instruction=text,
                action=StepAction.ASSERT,
                target=match.group(2) if is_count else match.group(1),
                value=match.group(1) if is_count else None,
                assertion_type=assertion_type,
                assertion_subject=subject,
            )

    if SCREENSHOT_PATTERN.match(text):
        return TestStep(instruction=text, action=StepAction.SCREENSHOT)

    return TestStep(instruction=text, action=StepAction.UNKNOWN, target=text)


def parse_suite_text(text: str, suite_name: str = "Unnamed Suite") -> TestSuite:
    """
    Parse a natural language test suite from text.

    Format::

        # Test: Login Flow
        go to https://example.com
        click the login button
        type "user@example.com" in email field
        verify url contains "/dashboard"

        # Test: Search
        go to https://example.com
        type "test query" in search box
        verify page contains "results"

    Lines before the first header belong to "Default Test". Blank lines and
    ``//`` comments are ignored, and tests without steps are dropped.
    """
    tests: list[TestCase] = []
    current_name: str | None = None
    current_steps: list[TestStep] = []

    def flush() -> None:
        if current_name is not None and current_steps:
            tests.append(TestCase(name=current_name, steps=tuple(current_steps)))

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith(COMMENT_PREFIX):
            continue

        if line.startswith("#") or line.lower().startswith("test:"):
            flush()
            header = TEST_HEADER_PATTERN.match(line)
            name = header.group(1).strip() if header else ""
            current_name = name or "Unnamed Test"
            current_steps = []
            continue

        if current_name is None:
            current_name = "Default Test"
        current_steps.append(parse_instruction(line))

    flush()
    return TestSuite(name=suite_name, tests=tuple(tests))


class SuiteParser:
    """Loads test suites from plain-text or YAML files."""

    YAML_SUFFIXES = frozenset({".yaml", ".yml"})

    def __init__(self) -> None:
        self._log = logger.bind(component="suite_parser")

    def parse_file(self, path: str | Path) -> TestSuite:
        """Parse a suite file; the format is chosen from the file extension."""
        file_path = Path(path)
        if not file_path.exists():
            raise InstructionParseError(f"File not found: {file_path}")
        if not file_path.is_file():
            raise InstructionParseError(f"Path is not a file: {file_path}")

        self._log.info("Parsing test file", path=str(file_path))
        content = file_path.read_text(encoding="utf-8")
        fmt = "yaml" if file_path.suffix.lower() in self.YAML_SUFFIXES else "text"
        return self.parse_string(content, fmt=fmt, suite_name=file_path.stem)

    def parse_string(
        self,
        content: str,
        fmt: str = "text",
        suite_name: str = "Unnamed Suite",
    ) -> TestSuite:
        """Parse suite content that is already in memory."""
        if fmt == "yaml":
            suite = self._parse_yaml(content, suite_name)
        elif fmt == "text":
            suite = parse_suite_text(content, suite_name)
        else:
            raise InstructionParseError(f"Unsupported suite format: {fmt}")

        if not suite.tests:
            raise InstructionParseError(f"Suite '{suite.name}' contains no tests")

        self._log.info(
            "Parsed test suite",
            name=suite.name,
            test_count=len(suite.tests),
            step_count=sum(len(t.steps) for t in suite.tests),
        )
        return suite

    def parse_directory(self, directory: str | Path, pattern: str = "**/*") -> list[TestSuite]:
        """Parse every .txt, .test and YAML file below a directory."""
        dir_path = Path(directory)
        if not dir_path.is_dir():
            raise InstructionParseError(f"Path is not a directory: {dir_path}")

        suites: list[TestSuite] = []
        for file_path in sorted(dir_path.glob(pattern)):
            if file_path.name.startswith(".") or not file_path.is_file():
                continue
            if file_path.suffix.lower() not in self.YAML_SUFFIXES | {".txt", ".test"}:
                continue
            suites.append(self.parse_file(file_path))

        self._log.info("Parsed directory", path=str(dir_path), file_count=len(suites))
        return suites

    def _parse_yaml(self, content: str, suite_name: str) -> TestSuite:
        try:
            raw_data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            mark = getattr(e, "problem_mark", None)
            if mark:
                raise InstructionParseError(
                    "Invalid YAML", line=mark.line + 1, column=mark.column + 1
                ) from e
            raise InstructionParseError(f"Invalid YAML: {e}") from e

        if not isinstance(raw_data, dict):
            raise InstructionParseError("YAML root must be a mapping/dictionary")

        try:
            if "tests" in raw_data:
                tests = [self._build_test(entry) for entry in raw_data.get("tests") or []]
                return TestSuite(name=raw_data.get("name") or suite_name, tests=tuple(tests))
            test = self._build_test(raw_data)
            return TestSuite(name=suite_name, tests=(test,))
        except ValidationError as e:
            error_messages = []
            for error in e.errors():
                loc = ".".join(str(x) for x in error["loc"])
                error_messages.append(f"  {loc}: {error['msg']}")
            raise InstructionParseError(
                "Validation failed:\n" + "\n".join(error_messages)
            ) from e

    def _build_test(self, entry: Any) -> TestCase:
        if not isinstance(entry, dict):
            raise InstructionParseError("Each test must be a mapping with 'name' and 'steps'")

        steps = entry.get("steps") or []
        if not isinstance(steps, list) or not all(isinstance(s, str) for s in steps):
            raise InstructionParseError(
                f"Test '{entry.get('name')}': steps must be a list of instruction strings"
            )

        return TestCase(
            name=entry.get("name") or "Unnamed Test",
            description=entry.get("description"),
            steps=tuple(parse_instruction(s) for s in steps if s.strip()),
        )
