import math

from engine import graph


def test_graph_expression_from_display() -> None:
    assert graph.graph_expression("y=x^2") == "x^2"
    assert graph.graph_expression("0") == ""
    assert graph.graph_expression("Syntax Error") == ""
    assert graph.graph_expression("2*x+1") == "2*x+1"


def test_edit_graph_expression() -> None:
    assert graph.edit_graph_expression("x+", "*") == "x*"
    assert graph.edit_graph_expression("x", "+") == "x+"
    assert graph.edit_graph_expression("x+1", "DEL") == "x+"
    assert graph.edit_graph_expression("", "DEL") == ""
    assert graph.edit_graph_expression("x+1", "C") == ""
    assert graph.edit_graph_expression("", "π") == "π"


def test_sample_line_is_one_polyline() -> None:
    polylines = graph.sample_curve("2*x+1", width=100, height=100, scale=10)
    assert len(polylines) == 1
    line = polylines[0]
    assert len(line) == 100
    # pixel column 50 is x = 0 → y = 1 → 10 px above the origin row
    px, py = line[50]
    assert px == 50.0
    assert math.isclose(py, 40.0)


def test_sample_breaks_at_undefined_points() -> None:
    # log(x) is undefined for x <= 0: only the right half is drawn
    polylines = graph.sample_curve("log(x)", width=100, height=100, scale=10)
    assert len(polylines) == 1
    assert polylines[0][0][0] == 51.0

    # 1/x has a pole at x = 0 (column 50), splitting the curve in two
    assert len(graph.sample_curve("1/x", width=100, height=100, scale=10)) == 2


def test_sample_empty_or_invalid_expression() -> None:
    assert graph.sample_curve("") == []
    assert graph.sample_curve("2x+") == []
    assert graph.sample_curve("foo(x)") == []


def test_sample_uses_degree_trig_and_constants() -> None:
    polylines = graph.sample_curve("sin(x)*π", width=40, height=40, scale=1)
    assert len(polylines) == 1
    assert all(math.isfinite(py) for _, py in polylines[0])
