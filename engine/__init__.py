"""SciCalc calculation engine: preprocess → evaluate → format."""

from engine.errors import CalculationError, ErrorKind, RemoteSolverError
from engine.evaluator import Evaluation, evaluate, evaluate_expression
from engine.formatter import FormatSettings, decimal_to_fraction, format_number

__all__ = [
    "CalculationError",
    "ErrorKind",
    "Evaluation",
    "FormatSettings",
    "RemoteSolverError",
    "decimal_to_fraction",
    "evaluate",
    "evaluate_expression",
    "format_number",
]
