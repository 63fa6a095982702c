from __future__ import annotations

import pytest

from aisync.math_solver import DIVIDE_BY_ZERO, format_number, solve


def test_multiplication_is_computed():
    result = solve("what is 7 * 6")

    assert result.result == 42
    assert result.operation == "multiplication"
    assert "**42**" in result.answer


@pytest.mark.parametrize(
    "question, expected",
    [
        ("3 + 5", 8),
        ("9 - 2", 7),
        ("10 / 4", 2.5),
        ("7 times 6", 42),
        ("10 divided by 2", 5),
        ("3 plus 4", 7),
        ("15% of 200", 30),
        ("15 percent of 200", 30),
        ("5 squared", 25),
        ("square root of 16", 4),
        ("(3 + 4) * 2", 14),
        ("2 + 3 * 4", 14),
    ],
)
def test_supported_forms(question, expected):
    assert solve(question).result == pytest.approx(expected)


def test_divide_by_zero():
    assert solve("what is 8 / 0").answer == DIVIDE_BY_ZERO
    assert solve("(1 + 1) / 0").answer == DIVIDE_BY_ZERO


@pytest.mark.parametrize("question", ["", "what is photosynthesis?", "tell me about covid-19", "room 101"])
def test_non_math_returns_none(question):
    assert solve(question) is None


def test_format_number():
    assert format_number(42.0) == "42"
    assert format_number(2.5) == "2.5"
