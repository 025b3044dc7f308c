"""
Graph sampling for SciCalc.

Turns ``y = f(x)`` into pixel polylines for the graphing panel's canvas.
The expression goes through the same preprocessor and restricted
evaluator as the calculator, with the name ``x`` bound per column.
"""

import math
import re

import numpy as np

from engine import preprocess
from engine.errors import CalculationError
from engine.evaluator import parse

DEFAULT_SIZE = 500
DEFAULT_SCALE = 20

_LETTERS_ONLY = re.compile(r"^[A-Za-z\s]+$")


def graph_expression(display: str) -> str:
    """Initial ``y =`` body taken from the calculator display."""
    if display.startswith("y="):
        return display[2:]
    if display == "0" or _LETTERS_ONLY.match(display):
        return ""
    return display


def edit_graph_expression(expr: str, label: str) -> str:
    """Apply one graph-keypad press to *expr*."""
    if label == "C":
        return ""
    if label == "DEL":
        return expr[:-1]
    if label in preprocess.BINARY_OPERATORS and expr[-1:] in preprocess.BINARY_OPERATORS:
        return expr[:-1] + label
    return expr + label


def sample_curve(expr: str, width: int = DEFAULT_SIZE, height: int = DEFAULT_SIZE,
                 scale: float = DEFAULT_SCALE) -> list:
    """Return the polylines of ``y = expr`` in canvas pixel coordinates.

    One sample per pixel column; a NaN, infinite or failing sample ends the
    current polyline.  An empty or unparseable expression has no curve.
    """
    body = expr.strip()
    if not body:
        return []
    try:
        tree = parse(preprocess.canonicalize(body))
        tree.evaluate({"x": 1.0})
    except CalculationError:
        return []

    origin_x = width / 2
    origin_y = height / 2
    columns = np.arange(width, dtype=float)
    xs = (columns - origin_x) / scale

    polylines = []
    current = []
    for px, x in zip(columns, xs):
        try:
            y = tree.evaluate({"x": float(x)})
        except CalculationError:
            y = math.nan
        if not math.isfinite(y):
            if current:
                polylines.append(current)
                current = []
            continue
        current.append((float(px), origin_y - y * scale))
    if current:
        polylines.append(current)
    return polylines
