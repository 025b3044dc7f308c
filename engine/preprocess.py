"""
SciCalc: Expression preprocessor.

Rewrites the calculator's surface syntax (percent suffixes, constants,
``^`` and the factorial suffix) into the canonical arithmetic form that
``engine.evaluator`` parses, and runs the structural checks that must fail
before any arithmetic is attempted.
"""

import re

from engine.errors import CalculationError, ErrorKind

BINARY_OPERATORS = ("+", "-", "*", "/", "^")

# Functions that take exactly two comma-separated arguments.
TWO_ARG_FUNCTIONS = ("root", "nPr", "nCr")

_NUMBER = r"\d+(?:\.\d+)?"

_PERCENT_OF_BASE = re.compile(rf"({_NUMBER})\s*([+\-])\s*({_NUMBER})%")
_BARE_PERCENT = re.compile(rf"({_NUMBER})%")
_EULER = re.compile(r"\be\b")
# A leading '-' belongs to the operand only in unary position.
_FACTORIAL = re.compile(rf"((?:(?<![\w.)!%])-)?{_NUMBER})!")
_TWO_ARG_CALL = re.compile(r"(?<![A-Za-z])(" + "|".join(TWO_ARG_FUNCTIONS) + r")\s*\(")


def strip_trailing_operator(expr: str) -> str:
    """Drop one trailing binary operator (an unfinished entry).

    Raises ``CalculationError(SYNTAX)`` when nothing is left to evaluate.
    """
    if expr and expr[-1] in BINARY_OPERATORS:
        expr = expr[:-1]
    if not expr.strip():
        raise CalculationError(ErrorKind.SYNTAX, "empty expression")
    return expr


def check_parentheses(expr: str) -> None:
    if expr.count("(") != expr.count(")"):
        raise CalculationError(
            ErrorKind.MISMATCHED_PARENTHESES,
            f"{expr.count('(')} '(' vs {expr.count(')')} ')'",
        )


def _call_arguments(expr: str, open_idx: int) -> list:
    """Split the argument list of the call whose '(' is at *open_idx*."""
    args = []
    depth = 0
    start = open_idx + 1
    for i in range(open_idx + 1, len(expr)):
        ch = expr[i]
        if ch == "(":
            depth += 1
        elif ch == ")":
            if depth == 0:
                args.append(expr[start:i])
                return args
            depth -= 1
        elif ch == "," and depth == 0:
            args.append(expr[start:i])
            start = i + 1
    args.append(expr[start:])
    return args


def check_function_args(expr: str) -> None:
    """Every root/nPr/nCr call needs exactly two non-blank arguments."""
    for m in _TWO_ARG_CALL.finditer(expr):
        args = _call_arguments(expr, m.end() - 1)
        if len(args) != 2 or any(not a.strip() for a in args):
            raise CalculationError(
                ErrorKind.INVALID_FUNCTION_ARGS,
                f"{m.group(1)}() takes 2 arguments, got {args!r}",
            )


def validate(expr: str) -> str:
    """Run the fail-fast structural checks; return the expression to evaluate."""
    expr = strip_trailing_operator(expr)
    check_parentheses(expr)
    check_function_args(expr)
    return expr


def rewrite_percentages(expr: str) -> str:
    """``100+10%`` → ``100 + (100 * 10 / 100)``; a bare ``50%`` → ``(50/100)``."""
    expr = _PERCENT_OF_BASE.sub(
        lambda m: f"{m.group(1)} {m.group(2)} ({m.group(1)} * {m.group(3)} / 100)",
        expr,
    )
    return _BARE_PERCENT.sub(r"(\1/100)", expr)


def canonicalize(expr: str) -> str:
    """Rewrite surface syntax into the evaluator's canonical grammar."""
    s = rewrite_percentages(expr)
    s = s.replace("π", "PI")
    s = _EULER.sub("E", s)
    s = s.replace("^", "**")
    s = _FACTORIAL.sub(r"factorial(\1)", s)
    return s
