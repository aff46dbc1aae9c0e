"""Exception types raised by autoheal."""

from __future__ import annotations


class AutoHealError(Exception):
    """Base class for autoheal errors."""


class DriverSessionError(AutoHealError):
    """Raised when a browser driver session cannot be acquired."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Failed to acquire driver session: {reason}")


class InstructionParseError(AutoHealError):
    """Raised when a test file or suite text cannot be parsed."""

    def __init__(self, message: str, line: int | None = None, column: int | None = None) -> None:
        self.line = line
        self.column = column
        location = ""
        if line is not None:
            location = f" at line {line}"
            if column is not None:
                location += f", column {column}"
        super().__init__(f"{message}{location}")


class ConfigError(AutoHealError, ValueError):
    """Raised when configuration values are invalid."""
