import logging

import pytest

from alertflow.conditions import EvalCondition, evaluate


@pytest.mark.parametrize(
    "op, query, expected, result",
    [
        (">", 5, 3, True),
        (">", 3, 3, False),
        (">=", 3, 3, True),
        (">=", 2, 3, False),
        ("<", 1, 3, True),
        ("<", 3, 3, False),
        ("<=", 3, 3, True),
        ("<=", 4, 3, False),
        ("==", 3, 3, True),
        ("==", 2, 3, False),
        ("!=", 2, 3, True),
        ("!=", 3, 3, False),
    ],
)
def test_operators(op, query, expected, result):
    assert evaluate(op, query, expected) is result
    assert EvalCondition(op, query, expected).holds() is result


def test_unknown_operator_never_holds(caplog):
    with caplog.at_level(logging.ERROR):
        assert evaluate("~", 1, 1) is False
    assert any("invalid evaluation condition" in r.message for r in caplog.records)


def test_empty_operator_never_holds():
    assert EvalCondition("", 10, 0).holds() is False


def test_strict_operators_are_complementary():
    for q in (1.0, 2.0, 3.0):
        assert evaluate(">", q, 2.0) != evaluate("<=", q, 2.0)
        assert evaluate("<", q, 2.0) != evaluate(">=", q, 2.0)
        assert evaluate("==", q, 2.0) != evaluate("!=", q, 2.0)