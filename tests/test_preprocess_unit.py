import pytest

from engine import preprocess
from engine.errors import CalculationError, ErrorKind


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("100+10%", "100 + (100 * 10 / 100)"),
        ("10-5%", "10 - (10 * 5 / 100)"),
        ("50%", "(50/100)"),
        ("200*10%", "200*(10/100)"),
        ("2.5+50%", "2.5 + (2.5 * 50 / 100)"),
    ],
)
def test_rewrite_percentages(raw: str, expected: str) -> None:
    assert preprocess.rewrite_percentages(raw) == expected


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("2*π", "2*PI"),
        ("e+1", "E+1"),
        ("1e5", "1e5"),
        ("2^3", "2**3"),
        ("5!", "factorial(5)"),
        ("-1!", "factorial(-1)"),
        ("5-1!", "5-factorial(1)"),
        ("2*-3!", "2*factorial(-3)"),
        ("(-4!)", "(factorial(-4))"),
        ("sin(30)", "sin(30)"),
    ],
)
def test_canonicalize(raw: str, expected: str) -> None:
    assert preprocess.canonicalize(raw) == expected


def test_strip_trailing_operator() -> None:
    assert preprocess.strip_trailing_operator("5+") == "5"
    assert preprocess.strip_trailing_operator("5^") == "5"
    assert preprocess.strip_trailing_operator("5") == "5"
    with pytest.raises(CalculationError) as err:
        preprocess.strip_trailing_operator("-")
    assert err.value.kind is ErrorKind.SYNTAX


def test_check_parentheses() -> None:
    preprocess.check_parentheses("(1+2)*(3)")
    with pytest.raises(CalculationError) as err:
        preprocess.check_parentheses("(1+2")
    assert err.value.kind is ErrorKind.MISMATCHED_PARENTHESES


@pytest.mark.parametrize("expr", ["root(3)", "nPr(5,)", "nCr(,2)", "nCr(1,2,3)", "root( , )"])
def test_check_function_args_rejects_wrong_arity(expr: str) -> None:
    with pytest.raises(CalculationError) as err:
        preprocess.check_function_args(expr)
    assert err.value.kind is ErrorKind.INVALID_FUNCTION_ARGS


@pytest.mark.parametrize("expr", ["root(3,27)", "nCr(5,2)+nPr(5,2)", "root(2,sin(30))", "root(nCr(4,2),64)"])
def test_check_function_args_accepts_two_args(expr: str) -> None:
    preprocess.check_function_args(expr)


def test_validate_order_strips_then_checks() -> None:
    assert preprocess.validate("(1+2)*") == "(1+2)"
    with pytest.raises(CalculationError) as err:
        preprocess.validate("(1+2*")
    assert err.value.kind is ErrorKind.MISMATCHED_PARENTHESES
