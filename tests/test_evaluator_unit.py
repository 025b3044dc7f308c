"""Tests for the restricted parser/evaluator and the full evaluation pipeline."""

import math

import pytest

from engine import evaluator
from engine.errors import CalculationError, ErrorKind
from engine.evaluator import evaluate, evaluate_expression
from engine.formatter import FormatSettings


def _kind(expr: str, settings=None) -> ErrorKind:
    with pytest.raises(CalculationError) as err:
        evaluate_expression(expr, settings)
    return err.value.kind


# ── Grammar / precedence ─────────────────────────────────────────────────

class TestGrammar:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("1+2*3", 7),
            ("(1+2)*3", 9),
            ("10-4-3", 3),
            ("16/4/2", 2),
            ("2**3**2", 512),
            ("-2**2", 4),
            ("2**-1", 0.5),
            ("--3", 3),
            ("+4", 4),
            (".5+5.", 5.5),
            ("1e3+2.5E-1", 1000.25),
        ],
    )
    def test_precedence_and_literals(self, text, expected):
        assert evaluate(text) == expected

    def test_constants(self):
        assert evaluate("PI") == math.pi
        assert evaluate("E") == math.e

    def test_names_are_bound_by_caller(self):
        assert evaluate("x**2+1", {"x": 3}) == 10

    def test_parse_builds_call_nodes(self):
        tree = evaluator.parse("root(3, 27)")
        assert isinstance(tree, evaluator.Call)
        assert tree.callee.ident == "root"
        assert len(tree.args) == 2

    @pytest.mark.parametrize("text", ["1.2.3", "3*/2", "(", "2)", "1,2", "2@3", "4 4", "", "f(1,"])
    def test_structural_failures_are_syntax_errors(self, text):
        with pytest.raises(CalculationError) as err:
            evaluate(text)
        assert err.value.kind is ErrorKind.SYNTAX

    @pytest.mark.parametrize("text", ["2(3)", "abc", "foo(1)", "(1)(2)", "sin"])
    def test_unevaluable_trees_are_malformed(self, text):
        with pytest.raises(CalculationError) as err:
            evaluate(text)
        assert err.value.kind is ErrorKind.MALFORMED

    def test_wrong_arity_of_known_function(self):
        with pytest.raises(CalculationError) as err:
            evaluate("sin(1,2)")
        assert err.value.kind is ErrorKind.INVALID_FUNCTION_ARGS

    def test_no_python_escape_hatch(self):
        for text in ("__import__('os')", "().__class__", "lambda: 1", "x.real"):
            with pytest.raises(CalculationError):
                evaluate(text, {"x": 1})

    def test_long_operator_chains(self):
        assert evaluate_expression("+".join(["1"] * 5000)).display == "5000"
        assert evaluate("*".join(["1"] * 5000)) == 1
        assert evaluate("**".join(["1"] * 3000)) == 1
        assert evaluate("-" * 1001 + "1") == -1

    def test_deep_nesting_is_not_a_syntax_error(self):
        assert evaluate_expression("(" * 500 + "1" + ")" * 500).value == 1
        assert evaluate("sin(" * 300 + "0" + ")" * 300) == 0
        assert _kind("(" * 300 + "2" + ")" * 299) is ErrorKind.MISMATCHED_PARENTHESES


# ── IEEE semantics ───────────────────────────────────────────────────────

class TestFloatSemantics:
    def test_division_by_zero(self):
        assert evaluate("1/0") == math.inf
        assert evaluate("-1/0") == -math.inf
        assert math.isnan(evaluate("0/0"))

    def test_power_domain(self):
        assert math.isnan(evaluate("(-8)**(1/3)"))
        assert evaluate("10**400") == math.inf
        assert evaluate("0**-1") == math.inf

    def test_factorial(self):
        assert evaluator.factorial(0) == 1
        assert evaluator.factorial(1) == 1
        assert evaluator.factorial(5) == 120
        assert math.isnan(evaluator.factorial(-1))
        assert math.isnan(evaluator.factorial(2.5))
        assert evaluator.factorial(171) == math.inf

    def test_permutations_and_combinations(self):
        assert evaluator.n_permute_r(5, 2) == 20
        assert evaluator.n_choose_r(5, 2) == 10
        assert evaluator.n_choose_r(5, 0) == 1
        assert math.isnan(evaluator.n_choose_r(2, 5))
        assert math.isnan(evaluator.n_permute_r(5.5, 2))

    def test_trig_uses_degrees(self):
        assert evaluate("sin(30)") == pytest.approx(0.5)
        assert evaluate("cos(60)") == pytest.approx(0.5)
        assert evaluate("tan(45)") == pytest.approx(1.0)
        assert math.isnan(evaluate("sin(1/0)"))

    def test_log_and_root(self):
        assert evaluate("log(1000)") == pytest.approx(3)
        assert evaluate("log(0)") == -math.inf
        assert math.isnan(evaluate("log(-1)"))
        assert evaluate("root(3,27)") == pytest.approx(3)
        assert evaluate("root(2,16)") == pytest.approx(4)
        assert math.isnan(evaluate("root(2,-4)"))


# ── Full pipeline ────────────────────────────────────────────────────────

class TestEvaluateExpression:
    @pytest.mark.parametrize("a,b", [(0, 0), (1, 2), (-7, 3), (123456, 654321), (2**40, 5)])
    def test_integer_addition_is_exact(self, a, b):
        expr = f"{a}+{b}" if b >= 0 else f"{a}+({b})"
        result = evaluate_expression(expr)
        assert result.value == a + b
        assert result.display == str(a + b)

    @pytest.mark.parametrize(
        "expr,display",
        [
            ("5!", "120"),
            ("0!", "1"),
            ("1!", "1"),
            ("nPr(5,2)", "20"),
            ("nCr(5,2)", "10"),
            ("100+10%", "110"),
            ("50%", "0.5"),
            ("10-5%", "9.5"),
            ("2^10", "1024"),
            ("0.1+0.2", "0.30000000000000004"),
            ("5*", "5"),
            ("2*π", "6.283185307179586"),
        ],
    )
    def test_results(self, expr, display):
        assert evaluate_expression(expr).display == display

    @pytest.mark.parametrize(
        "expr,kind",
        [
            ("-1!", ErrorKind.DOMAIN),
            ("nCr(2,5)", ErrorKind.DOMAIN),
            ("1/0", ErrorKind.DOMAIN),
            ("log(-5)", ErrorKind.DOMAIN),
            ("171!", ErrorKind.DOMAIN),
            ("(1+2", ErrorKind.MISMATCHED_PARENTHESES),
            ("root(3)", ErrorKind.INVALID_FUNCTION_ARGS),
            ("nPr(5,)", ErrorKind.INVALID_FUNCTION_ARGS),
            ("+", ErrorKind.SYNTAX),
            ("", ErrorKind.SYNTAX),
            ("3*/2", ErrorKind.SYNTAX),
            ("2(3)", ErrorKind.MALFORMED),
        ],
    )
    def test_error_classification(self, expr, kind):
        assert _kind(expr) is kind

    def test_rounding_precision(self):
        result = evaluate_expression("1/3", FormatSettings(precision=2))
        assert result.display == "0.33"
        assert result.value == 0.33
        assert result.fraction == "33/100"

    def test_fraction_hint_and_expression(self):
        result = evaluate_expression("1/3*")
        assert result.expression == "1/3"
        assert result.display == "0.3333333333333333"
        assert result.fraction == "1/3"
        assert evaluate_expression("2+2").fraction is None
