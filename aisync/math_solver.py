"""
Math Solver - direct evaluation of arithmetic questions

Arithmetic answers are computed, never looked up, so they do not depend on
what the pattern store happens to contain.

Handles:
- Binary arithmetic: 7 * 6, 10 / 4, 3 + 5, 9 - 2 (also × and ÷)
- Word forms: 7 times 6, 10 divided by 2, 3 plus 4, 9 minus 2
- Percentages: 15% of 200, 15 percent of 200
- Squares: 5 squared, 5^2
- Square roots: square root of 16, sqrt 16
- General expressions of digits, operators and parentheses (via SymPy)
"""

import math
import re
from dataclasses import dataclass
from tokenize import TokenError
from typing import Callable, List, Optional, Tuple

import sympy as sp
from sympy.parsing.sympy_parser import parse_expr, standard_transformations

_NUMBER = r"(\d+(?:\.\d+)?)"

_BINARY = re.compile(_NUMBER + r"\s*([+\-*/÷×])\s*" + _NUMBER)
_PERCENT = re.compile(_NUMBER + r"\s*(?:%|percent)\s*of\s*" + _NUMBER)
_SQUARED = re.compile(_NUMBER + r"\s*(?:squared|to\s+the\s+power\s+of\s+2|\^\s*2\b)")
_SQRT = re.compile(r"(?:square\s+root\s+of|sqrt)\s*\(?\s*" + _NUMBER)
_WORD_PLUS = re.compile(_NUMBER + r"\s+(?:plus|add|added\s+to)\s+" + _NUMBER)
_WORD_MINUS = re.compile(_NUMBER + r"\s+(?:minus|subtract)\s+" + _NUMBER)
_WORD_TIMES = re.compile(_NUMBER + r"\s+(?:times|multiplied\s+by|multiply)\s+" + _NUMBER)
_WORD_DIVIDE = re.compile(_NUMBER + r"\s+(?:divided\s+by|divide)\s+" + _NUMBER)
_EXPRESSION = re.compile(r"[\d+\-*/÷×^().\s]+")
_SAFE_EXPRESSION = re.compile(r"^[\d+\-*/.()]+$")
_OPERATION_SHAPE = re.compile(r"[\d)]\s*[+\-*/÷×^]\s*[\d(]")

DIVIDE_BY_ZERO = "❌ Cannot divide by zero!"


@dataclass
class MathAnswer:
    """A solved arithmetic question."""
    expression: str
    result: Optional[float]
    operation: str
    answer: str


def format_number(value: float) -> str:
    """Render integral values without a trailing ``.0``."""
    if value == int(value) and abs(value) < 1e15:
        return str(int(value))
    return repr(round(value, 10))


_OPERATIONS = {
    "+": ("addition", lambda a, b: a + b),
    "-": ("subtraction", lambda a, b: a - b),
    "*": ("multiplication", lambda a, b: a * b),
    "×": ("multiplication", lambda a, b: a * b),
    "/": ("division", lambda a, b: a / b),
    "÷": ("division", lambda a, b: a / b),
}


def _explain(a: str, operator: str, b: str, result: str) -> str:
    if operator == "+":
        return f"When you add {a} and {b}, you combine their values to get {result}."
    if operator == "-":
        return f"When you subtract {b} from {a}, the difference is {result}."
    if operator in ("*", "×"):
        return f"Multiplying {a} by {b} means adding {a} to itself {b} times, which gives {result}."
    return f"Dividing {a} by {b} splits {a} into {b} equal parts of {result} each."


def _binary(a: str, operator: str, b: str) -> MathAnswer:
    operation, func = _OPERATIONS[operator]
    x, y = float(a), float(b)
    if operation == "division" and y == 0:
        return MathAnswer(f"{a} {operator} {b}", None, operation, DIVIDE_BY_ZERO)
    result = func(x, y)
    shown = format_number(result)
    left, right = format_number(x), format_number(y)
    answer = (
        f"🔢 {left} {operator} {right} = **{shown}**\n\n"
        f"This is a {operation} problem. {_explain(left, operator, right, shown)}"
    )
    return MathAnswer(f"{left} {operator} {right}", result, operation, answer)


def _solve_binary(match: "re.Match[str]") -> MathAnswer:
    return _binary(match.group(1), match.group(2), match.group(3))


def _solve_percent(match: "re.Match[str]") -> MathAnswer:
    percentage, number = float(match.group(1)), float(match.group(2))
    result = percentage / 100 * number
    p, n, r = format_number(percentage), format_number(number), format_number(result)
    answer = (
        f"🔢 {p}% of {n} = **{r}**\n\n"
        f"To take a percentage, multiply the number by the percentage divided by 100: "
        f"{n} × ({p}/100) = {r}"
    )
    return MathAnswer(f"{p}% of {n}", result, "percentage", answer)


def _solve_squared(match: "re.Match[str]") -> MathAnswer:
    number = float(match.group(1))
    result = number * number
    n, r = format_number(number), format_number(result)
    answer = f"🔢 {n}² = **{r}**\n\nSquaring a number multiplies it by itself: {n} × {n} = {r}"
    return MathAnswer(f"{n}^2", result, "square", answer)


def _solve_sqrt(match: "re.Match[str]") -> MathAnswer:
    number = float(match.group(1))
    result = round(math.sqrt(number), 2)
    n, r = format_number(number), format_number(result)
    answer = (
        f"🔢 √{n} = **{r}**\n\n"
        "The square root is the number that, multiplied by itself, gives the original number."
    )
    return MathAnswer(f"sqrt({n})", result, "square root", answer)


def _word(operator: str) -> Callable[["re.Match[str]"], MathAnswer]:
    def solve(match: "re.Match[str]") -> MathAnswer:
        return _binary(match.group(1), operator, match.group(2))
    return solve


# Order matters: percent and square forms contain numbers the binary
# pattern would otherwise grab first.
_SOLVERS: List[Tuple["re.Pattern[str]", Callable[["re.Match[str]"], MathAnswer]]] = [
    (_PERCENT, _solve_percent),
    (_SQUARED, _solve_squared),
    (_SQRT, _solve_sqrt),
    (_BINARY, _solve_binary),
    (_WORD_PLUS, _word("+")),
    (_WORD_MINUS, _word("-")),
    (_WORD_TIMES, _word("×")),
    (_WORD_DIVIDE, _word("÷")),
]


def _expression_candidates(text: str) -> List[str]:
    candidates = [m.group(0).strip() for m in _EXPRESSION.finditer(text)]
    return [c for c in candidates if _OPERATION_SHAPE.search(c)]


def _is_compound(text: str) -> bool:
    """True when the expression has parentheses or more than one operator."""
    candidates = _expression_candidates(text)
    if not candidates:
        return False
    expression = max(candidates, key=len)
    return "(" in expression or len(re.findall(r"[+\-*/÷×^]", expression)) > 1


def evaluate_expression(question: str) -> Optional[MathAnswer]:
    """
    Evaluate a plain expression such as ``(3 + 4) * 2`` with SymPy.

    Returns None when the question holds no safe, evaluable expression.
    """
    candidates = _expression_candidates(question)
    if not candidates:
        return None

    expression = max(candidates, key=len)
    cleaned = re.sub(r"\s+", "", expression.replace("÷", "/").replace("×", "*"))
    cleaned = cleaned.replace("^", "**")
    if not _SAFE_EXPRESSION.match(cleaned.replace("**", "*")):
        return None

    try:
        value = parse_expr(cleaned, transformations=standard_transformations, evaluate=True)
    except (SyntaxError, TokenError, TypeError, ValueError, sp.SympifyError):
        return None

    if value.has(sp.zoo) or value.has(sp.nan):
        return MathAnswer(expression, None, "expression", DIVIDE_BY_ZERO)
    if not value.is_number:
        return None

    result = float(sp.N(value))
    if not math.isfinite(result):
        return None
    shown = format_number(result)
    answer = f"🔢 {expression} = **{shown}**\n\nCalculation completed."
    return MathAnswer(expression, result, "expression", answer)


def solve(question: str) -> Optional[MathAnswer]:
    """
    Solve an arithmetic question.

    Returns:
        MathAnswer, or None when the question is not solvable arithmetic
    """
    if not question or not re.search(r"\d", question):
        return None

    lowered = question.lower().strip()
    if _is_compound(lowered):
        compound = evaluate_expression(lowered)
        if compound:
            return compound

    for pattern, solver in _SOLVERS:
        match = pattern.search(lowered)
        if match:
            return solver(match)

    return evaluate_expression(lowered)


__all__ = ["DIVIDE_BY_ZERO", "MathAnswer", "evaluate_expression", "format_number", "solve"]
