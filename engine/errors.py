"""
SciCalc: Error kinds shown on the calculator display.

Every local failure resolves to one member of ``ErrorKind``; the member's
value is the exact label that replaces the display buffer.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    SYNTAX = "Syntax Error"
    MALFORMED = "Malformed Expression"
    MISMATCHED_PARENTHESES = "Mismatched Parentheses"
    INVALID_FUNCTION_ARGS = "Invalid Function Args"
    DOMAIN = "Domain Error"
    INVALID_EQUATION = "Invalid Equation"
    SOLVER_FAILED = "Solver Failed"

    @property
    def label(self) -> str:
        return self.value

    @classmethod
    def from_label(cls, text: str) -> Optional["ErrorKind"]:
        """Return the kind whose label is *text*, or None."""
        for kind in cls:
            if kind.value == text:
                return kind
        return None


class CalculationError(ValueError):
    """Raised by the engine; carries the ErrorKind to display."""

    def __init__(self, kind: ErrorKind, detail: str = ""):
        super().__init__(detail or kind.label)
        self.kind = kind
        self.detail = detail

    @property
    def label(self) -> str:
        return self.kind.label


class RemoteSolverError(RuntimeError):
    """The generative-language collaborator could not produce an answer."""
