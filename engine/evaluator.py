"""
SciCalc: Restricted expression evaluator.

Parses the canonical form produced by ``engine.preprocess`` with a
shunting-yard parser and evaluates it in IEEE-754 double precision.
Only this grammar is accepted; nothing is handed to ``eval``.

    expr    := unary (BINOP unary)*
    unary   := ('+' | '-')* postfix
    postfix := primary ('(' (expr (',' expr)*)? ')')*
    primary := NUMBER | NAME | '(' expr ')'

Binary operators bind ``+ -`` < ``* /`` < ``**``.  Unary signs bind
tighter than ``**`` (``-2**2`` is 4) and ``**`` is right-associative.
Neither parsing nor evaluation recurses, so input length and nesting
depth are bounded only by memory.
"""

import logging
import math
import re
from collections import namedtuple
from dataclasses import dataclass
from typing import Optional

from engine import preprocess
from engine.errors import CalculationError, ErrorKind
from engine.formatter import FormatSettings, format_result

logger = logging.getLogger(__name__)

Token = namedtuple("Token", "kind text pos")

_TOKEN_SPEC = [
    ("NUMBER", r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"),
    ("NAME", r"[A-Za-z_]\w*"),
    ("POW", r"\*\*"),
    ("OP", r"[+\-*/(),]"),
    ("SKIP", r"\s+"),
    ("MISMATCH", r"."),
]
_TOKEN_RE = re.compile("|".join(f"(?P<{name}>{pattern})" for name, pattern in _TOKEN_SPEC))


# ── IEEE-754 helpers (Python raises where the host math yields inf/nan) ──

def _divide(a: float, b: float) -> float:
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _power(a: float, b: float) -> float:
    try:
        return math.pow(a, b)
    except OverflowError:
        if a < 0 and b.is_integer() and b % 2 == 1:
            return -math.inf
        return math.inf
    except ValueError:
        if a == 0 and b < 0:
            return math.inf
        return math.nan


def _trig(fn):
    def degrees(x: float) -> float:
        if not math.isfinite(x):
            return math.nan
        return fn(math.radians(x))
    return degrees


def _log10(x: float) -> float:
    if x == 0:
        return -math.inf
    if x < 0 or math.isnan(x):
        return math.nan
    return math.log10(x)


def _root(degree: float, number: float) -> float:
    return _power(number, _divide(1.0, degree))


def _is_whole(n: float) -> bool:
    return math.isfinite(n) and n % 1 == 0


def factorial(n: float) -> float:
    """Iterative n!; NaN for negative or non-integer input."""
    if math.isnan(n) or n < 0 or n % 1 != 0:
        return math.nan
    if n in (0, 1):
        return 1.0
    result = 1.0
    for i in range(2, int(n) + 1):
        result *= i
        if math.isinf(result):
            break
    return result


def n_permute_r(n: float, r: float) -> float:
    if n < r or n < 0 or r < 0 or not _is_whole(n) or not _is_whole(r):
        return math.nan
    return _divide(factorial(n), factorial(n - r))


def n_choose_r(n: float, r: float) -> float:
    if n < r or n < 0 or r < 0 or not _is_whole(n) or not _is_whole(r):
        return math.nan
    return _divide(factorial(n), factorial(r) * factorial(n - r))


# name -> (callable, arity)
FUNCTIONS = {
    "sin": (_trig(math.sin), 1),
    "cos": (_trig(math.cos), 1),
    "tan": (_trig(math.tan), 1),
    "log": (_log10, 1),
    "root": (_root, 2),
    "nPr": (n_permute_r, 2),
    "nCr": (n_choose_r, 2),
    "factorial": (factorial, 1),
}

CONSTANTS = {
    "PI": math.pi,
    "E": math.e,
}


# ── AST ────────────────────────────────────────────────────────────────
#
# Trees are walked with an explicit stack (``_walk``), so long operator
# chains and deep nesting never reach the interpreter's recursion limit.

class Node:
    children = ()

    def evaluate(self, names: dict) -> float:
        return _walk(self, names)

    def check(self) -> None:
        """Runs before any child is evaluated."""

    def combine(self, operands: list, names: dict) -> float:
        raise NotImplementedError


class Num(Node):
    def __init__(self, value: float):
        self.value = value

    def combine(self, operands: list, names: dict) -> float:
        return self.value

    def __repr__(self):
        return f"Num({self.value!r})"


class Name(Node):
    def __init__(self, ident: str):
        self.ident = ident

    def combine(self, operands: list, names: dict) -> float:
        if self.ident in names:
            return float(names[self.ident])
        if self.ident in CONSTANTS:
            return CONSTANTS[self.ident]
        raise CalculationError(ErrorKind.MALFORMED, f"'{self.ident}' is not a value")

    def __repr__(self):
        return f"Name({self.ident!r})"


class Unary(Node):
    def __init__(self, operator: str, operand: Node):
        self.operator = operator
        self.operand = operand
        self.children = (operand,)

    def combine(self, operands: list, names: dict) -> float:
        (value,) = operands
        return -value if self.operator == "-" else value


class BinOp(Node):
    def __init__(self, left: Node, operator: str, right: Node):
        self.left = left
        self.operator = operator
        self.right = right
        self.children = (left, right)

    def combine(self, operands: list, names: dict) -> float:
        a, b = operands
        if self.operator == "+":
            return a + b
        if self.operator == "-":
            return a - b
        if self.operator == "*":
            return a * b
        if self.operator == "/":
            return _divide(a, b)
        if self.operator == "**":
            return _power(a, b)
        raise CalculationError(ErrorKind.MALFORMED, f"unknown operator {self.operator!r}")


class Call(Node):
    def __init__(self, callee: Node, args: list):
        self.callee = callee
        self.args = args
        self.children = tuple(args)

    def check(self) -> None:
        if not isinstance(self.callee, Name) or self.callee.ident not in FUNCTIONS:
            raise CalculationError(
                ErrorKind.MALFORMED, f"{type(self.callee).__name__} is not a function")
        arity = FUNCTIONS[self.callee.ident][1]
        if len(self.args) != arity:
            raise CalculationError(
                ErrorKind.INVALID_FUNCTION_ARGS,
                f"{self.callee.ident}() takes {arity} argument(s), got {len(self.args)}",
            )

    def combine(self, operands: list, names: dict) -> float:
        fn = FUNCTIONS[self.callee.ident][0]
        return fn(*operands)


def _walk(root: Node, names: dict) -> float:
    """Post-order evaluation of *root*, children left to right."""
    values = []
    pending = [(root, False)]
    while pending:
        node, ready = pending.pop()
        if ready:
            count = len(node.children)
            operands = values[len(values) - count:]
            del values[len(values) - count:]
            values.append(node.combine(operands, names))
            continue
        node.check()
        pending.append((node, True))
        pending.extend((child, False) for child in reversed(node.children))
    return values[0]


# ── Tokenizer / parser ──────────────────────────────────────────────────

# Binding strength of the binary operators; '**' is right-associative.
_PRECEDENCE = {"+": 1, "-": 1, "*": 2, "/": 2, "**": 3}


def tokenize(text: str) -> list:
    tokens = []
    for m in _TOKEN_RE.finditer(text):
        kind = m.lastgroup
        if kind == "SKIP":
            continue
        if kind == "MISMATCH":
            raise CalculationError(
                ErrorKind.SYNTAX, f"unexpected character {m.group()!r} at {m.start()}"
            )
        tokens.append(Token(kind, m.group(), m.start()))
    return tokens


def _unexpected(tok: Token) -> CalculationError:
    return CalculationError(ErrorKind.SYNTAX, f"unexpected token {tok.text!r} at {tok.pos}")


def _should_pop(top: tuple, incoming: str) -> bool:
    """Reduce *top* before pushing the binary operator *incoming*?"""
    if top[0] == "unary":
        return True
    if top[0] != "binary":
        return False
    prec_t, prec_i = _PRECEDENCE[top[1]], _PRECEDENCE[incoming]
    return prec_t > prec_i or (prec_t == prec_i and incoming != "**")


class _Parser:
    """Shunting-yard over the token list, building AST nodes.

    ``ops`` holds ``("unary", op)``, ``("binary", op)``, ``("group",)`` and
    ``("call", callee, base)`` entries, where *base* is the operand-stack
    height at which the call's arguments start.
    """

    def __init__(self, tokens: list):
        self.tokens = tokens
        self.operands = []
        self.ops = []

    def parse(self) -> Node:
        expect_operand = True
        for tok in self.tokens:
            if tok.kind in ("NUMBER", "NAME"):
                if not expect_operand:
                    raise _unexpected(tok)
                node = Num(float(tok.text)) if tok.kind == "NUMBER" else Name(tok.text)
                self.operands.append(node)
                expect_operand = False
            elif tok.text == "(":
                if expect_operand:
                    self.ops.append(("group",))
                else:
                    callee = self.operands.pop()
                    self.ops.append(("call", callee, len(self.operands)))
                expect_operand = True
            elif tok.text == ")":
                self._close(tok, expect_operand)
                expect_operand = False
            elif tok.text == ",":
                if expect_operand:
                    raise _unexpected(tok)
                self._reduce_to_bracket(tok)
                if self.ops[-1][0] != "call":
                    raise _unexpected(tok)
                expect_operand = True
            elif expect_operand:
                if tok.text not in ("+", "-"):
                    raise _unexpected(tok)
                self.ops.append(("unary", tok.text))
            else:
                while self.ops and _should_pop(self.ops[-1], tok.text):
                    self._reduce()
                self.ops.append(("binary", tok.text))
                expect_operand = True

        if expect_operand:
            raise CalculationError(ErrorKind.SYNTAX, "unexpected end of expression")
        while self.ops:
            if self.ops[-1][0] in ("group", "call"):
                raise CalculationError(ErrorKind.SYNTAX, "expected ')', found end of expression")
            self._reduce()
        return self.operands[0]

    def _reduce(self) -> None:
        entry = self.ops.pop()
        if entry[0] == "unary":
            self.operands.append(Unary(entry[1], self.operands.pop()))
            return
        right = self.operands.pop()
        left = self.operands.pop()
        self.operands.append(BinOp(left, entry[1], right))

    def _reduce_to_bracket(self, tok: Token) -> None:
        while self.ops and self.ops[-1][0] not in ("group", "call"):
            self._reduce()
        if not self.ops:
            raise _unexpected(tok)

    def _close(self, tok: Token, expect_operand: bool) -> None:
        if expect_operand:
            # Only an empty call such as "f()" may close straight after '('.
            top = self.ops[-1] if self.ops else None
            if top is None or top[0] != "call" or len(self.operands) != top[2]:
                raise _unexpected(tok)
            self.ops.pop()
            self.operands.append(Call(top[1], []))
            return
        self._reduce_to_bracket(tok)
        entry = self.ops.pop()
        if entry[0] == "call":
            _, callee, base = entry
            args = self.operands[base:]
            del self.operands[base:]
            self.operands.append(Call(callee, args))


def parse(text: str) -> Node:
    """Parse canonical *text* into an AST; raises CalculationError(SYNTAX)."""
    return _Parser(tokenize(text)).parse()


def evaluate(text: str, names: Optional[dict] = None) -> float:
    """Parse and evaluate canonical *text*; may return nan or ±inf."""
    return parse(text).evaluate(names or {})


# ── Full pipeline ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class Evaluation:
    expression: str
    value: float
    display: str
    fraction: Optional[str]


def evaluate_expression(display: str, settings: Optional[FormatSettings] = None) -> Evaluation:
    """Evaluate a raw calculator buffer.

    Runs the structural checks, rewrites to canonical form, evaluates,
    rejects non-finite results and formats with *settings*.  Every failure
    is a ``CalculationError`` carrying the ErrorKind to display.
    """
    settings = settings or FormatSettings()
    try:
        expression = preprocess.validate(display)
        value = evaluate(preprocess.canonicalize(expression))
        if not math.isfinite(value):
            raise CalculationError(ErrorKind.DOMAIN, f"{display!r} evaluated to {value}")
    except CalculationError as exc:
        logger.debug("Evaluation of %r failed: %s (%s)", display, exc.label, exc.detail)
        raise
    rounded, text, fraction = format_result(value, settings)
    return Evaluation(expression=expression, value=rounded, display=text, fraction=fraction)
