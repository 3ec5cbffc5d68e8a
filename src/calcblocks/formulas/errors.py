"""Error types for formula authoring checks and tool loading.

The runtime evaluator never raises these; they surface from the strict
grammar used by the authoring lint and from configuration loading.
"""

from __future__ import annotations


class FormulaError(Exception):
    """Base class for all formula-related errors."""


class FormulaParseError(FormulaError):
    """Syntax error in a formula expression.

    Attributes:
        position: Character position where the error was detected.
    """

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        self.detail = message
        full = f"Formula parse error: {message}"
        if position is not None:
            full += f" (at position {position})"
        super().__init__(full)


class FormulaRefError(FormulaError):
    """Reference to a name that is not available where it is used.

    Attributes:
        ref_name: The unresolved reference.
        available: Names that are available at that point.
    """

    def __init__(self, ref_name: str, available: list[str] | None = None) -> None:
        self.ref_name = ref_name
        self.available = available or []
        msg = f"Unknown reference: {ref_name!r}"
        if self.available:
            msg += f". Available: {self.available}"
        super().__init__(msg)


class ToolConfigError(Exception):
    """A tool configuration file could not be read or is invalid."""
