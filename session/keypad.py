"""
SciCalc: Keypad session.

Holds the display buffer, fraction hint and history of one calculator and
applies single key presses to them.  Evaluation goes through
``engine.evaluate_expression``; equations with variables are handed to a
remote solver collaborator.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from engine import CalculationError, ErrorKind, FormatSettings, RemoteSolverError, evaluate_expression
from engine.preprocess import BINARY_OPERATORS

logger = logging.getLogger(__name__)

FUNCTION_KEYS = ("sin", "cos", "tan", "log", "root", "nPr", "nCr")
CONSTANT_KEYS = ("π", "e")
PANEL_KEYS = ("Fn", "Settings", "Graph", "Formulas", "Long Division", "Assistant", "Hist")
SOLVE_ACTION = "solve"

# A '-' after these is a sign, not a replacement operator.
_SIGN_AFTER = ("*", "/", "^", "(")
_SEGMENT_SPLIT = re.compile(r"[+\-*/^()=,]")
_IMPLICIT_MUL_AFTER = re.compile(r"[\d)πe]$")
_VARIABLE = re.compile(r"[xyz]")


class KeypadState(Enum):
    IDLE = "idle"
    EDITING = "editing"
    EVALUATED = "evaluated"
    ERROR = "error"


@dataclass(frozen=True)
class HistoryEntry:
    expression: str
    result: str
    timestamp: str
    solved: bool = False

    @property
    def entry(self) -> str:
        joiner = "=>" if self.solved else "="
        return f"{self.expression} {joiner} {self.result}"


@dataclass(frozen=True)
class KeyResult:
    display: str
    fraction: Optional[str]
    state: KeypadState
    action: Optional[str] = None


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M")


class Calculator:
    """One calculator: display buffer, fraction hint, history.

    *solver* is any object with an ``async solve(equation) -> str`` method
    that raises ``RemoteSolverError`` on failure.
    """

    def __init__(self, settings: Optional[FormatSettings] = None, solver=None):
        self.settings = settings or FormatSettings()
        self.solver = solver
        self.display = "0"
        self.fraction: Optional[str] = None
        self.state = KeypadState.IDLE
        self.history: list = []
        self.is_solving = False
        self.panel: Optional[str] = None

    # ── public API ──────────────────────────────────────────────────────

    def press(self, label: str) -> KeyResult:
        """Apply one key press; the keypad's single entry point."""
        action = None
        if label in FUNCTION_KEYS or label in CONSTANT_KEYS or label == "(":
            self._append_group(label)
        elif label in PANEL_KEYS:
            self.panel = label
            action = label
        elif label == "Solve":
            action = SOLVE_ACTION
        elif label == "C":
            self._set("0")
        elif label == "DEL":
            if self.state is KeypadState.ERROR or len(self.display) <= 1:
                self._set("0")
            else:
                self._set(self.display[:-1])
        elif label == "=":
            action = self._equals()
        else:
            self._append(label)
        return self._result(action)

    async def solve(self) -> KeyResult:
        """Send the buffer to the remote solver (awaited by the caller)."""
        equation = self.display
        if not _VARIABLE.search(equation) or "=" not in equation:
            self._fail(ErrorKind.INVALID_EQUATION)
            return self._result()
        if self.solver is None:
            logger.warning("No remote solver configured; cannot solve %r", equation)
            self._fail(ErrorKind.SOLVER_FAILED)
            return self._result()

        self.is_solving = True
        self.fraction = None
        try:
            answer = await self.solver.solve(equation)
        except RemoteSolverError as exc:
            logger.warning("Remote solve of %r failed: %s", equation, exc)
            self._fail(ErrorKind.SOLVER_FAILED)
            return self._result()
        finally:
            self.is_solving = False

        self.display = answer
        self.state = KeypadState.EVALUATED
        self.history.insert(0, HistoryEntry(equation, answer, _timestamp(), solved=True))
        return self._result()

    def clear_history(self) -> None:
        self.history = []

    def apply_settings(self, settings: FormatSettings) -> None:
        self.settings = settings

    # ── internals ───────────────────────────────────────────────────────

    def _result(self, action: Optional[str] = None) -> KeyResult:
        return KeyResult(self.display, self.fraction, self.state, action)

    def _set(self, display: str) -> None:
        self.display = display
        self.fraction = None
        self.state = KeypadState.IDLE if display == "0" else KeypadState.EDITING

    def _fail(self, kind: ErrorKind) -> None:
        self.display = kind.label
        self.fraction = None
        self.state = KeypadState.ERROR

    def _append_group(self, label: str) -> None:
        """Functions (with their '('), constants and '(' get implicit '*'."""
        token = f"{label}(" if label in FUNCTION_KEYS else label
        if self.display == "0" or self.state in (KeypadState.ERROR, KeypadState.EVALUATED):
            self._set(token)
        elif _IMPLICIT_MUL_AFTER.search(self.display):
            self._set(self.display + "*" + token)
        else:
            self._set(self.display + token)

    def _append(self, value: str) -> None:
        display = self.display
        is_operator = value in BINARY_OPERATORS

        if self.state is KeypadState.ERROR:
            if not is_operator:
                self._set(value)
            return
        if self.state is KeypadState.EVALUATED and not is_operator and value not in ("%", "!"):
            self._set(value)
            return

        if value == ".":
            if "." in _SEGMENT_SPLIT.split(display)[-1]:
                return

        if is_operator:
            if display == "0":
                if value == "-":
                    self._set("-")
                return
            last = display[-1]
            if last in BINARY_OPERATORS:
                if value == "-" and last in _SIGN_AFTER:
                    self._set(display + value)
                elif len(display) > 1 and display[-2] in BINARY_OPERATORS:
                    self._set(display[:-2] + value)
                else:
                    self._set(display[:-1] + value)
                return

        if display == "0" and value not in (".", "%", "!"):
            self._set(value)
            return
        self._set(display + value)

    def _equals(self) -> Optional[str]:
        if self.state is KeypadState.ERROR:
            return None
        if _VARIABLE.search(self.display):
            parts = self.display.split("=")
            if len(parts) == 2 and parts[0].strip() and parts[1].strip():
                return SOLVE_ACTION
            if len(parts) == 1:
                self._set(self.display + "=")
            return None

        try:
            evaluation = evaluate_expression(self.display, self.settings)
        except CalculationError as exc:
            self._fail(exc.kind)
            return None

        self.display = evaluation.display
        self.fraction = evaluation.fraction
        self.state = KeypadState.EVALUATED
        self.history.insert(
            0, HistoryEntry(evaluation.expression, evaluation.display, _timestamp()))
        return None
