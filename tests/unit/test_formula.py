from __future__ import annotations

import math
from datetime import date, datetime

import pytest

from formbuilder.exceptions import FormulaError
from formbuilder.formula import (
    FormulaEvaluator,
    add_days,
    days_between,
    parse_float,
    parse_int,
    to_date,
    years_between,
)


@pytest.fixture
def evaluator() -> FormulaEvaluator:
    return FormulaEvaluator()


def test_arithmetic_with_bindings(evaluator: FormulaEvaluator) -> None:
    assert evaluator.evaluate("a + b", {"a": 2, "b": 3}) == 5
    assert evaluator.evaluate("(price * qty) - discount", {"price": 4.5, "qty": 2, "discount": 1}) == 8.0
    assert evaluator.evaluate("total // 3 + total % 3", {"total": 10}) == 4
    assert evaluator.evaluate("-x ** 2", {"x": 3}) == -9


def test_string_concatenation_and_methods(evaluator: FormulaEvaluator) -> None:
    bindings = {"first": " jane ", "last": "doe"}
    assert evaluator.evaluate("first.strip().title() + ' ' + last.upper()", bindings) == "Jane DOE"


def test_conditionals_and_comparisons(evaluator: FormulaEvaluator) -> None:
    formula = "'adult' if 18 <= age < 130 else 'minor'"
    assert evaluator.evaluate(formula, {"age": 30}) == "adult"
    assert evaluator.evaluate(formula, {"age": 12}) == "minor"
    assert evaluator.evaluate("a in ['x', 'y'] and not b", {"a": "x", "b": False}) is True
    assert evaluator.evaluate("a or b", {"a": "", "b": "fallback"}) == "fallback"


def test_subscripts_on_bindings(evaluator: FormulaEvaluator) -> None:
    bindings = {"fields": {"1700000000000": 7}, "code": "ABC-123"}
    assert evaluator.evaluate("fields['1700000000000'] * 2", bindings) == 14
    assert evaluator.evaluate("code[:3]", bindings) == "ABC"


def test_numeric_parsing_functions(evaluator: FormulaEvaluator) -> None:
    assert evaluator.evaluate("parseInt(a) + parse_float(b)", {"a": "42px", "b": "1.5kg"}) == 43.5
    assert evaluator.evaluate("round(sqrt(n), 2)", {"n": 2}) == 1.41
    assert evaluator.evaluate("max(a, b, 10)", {"a": 3, "b": 12}) == 12


def test_date_functions(evaluator: FormulaEvaluator) -> None:
    bindings = {"start": "2026-02-10", "end": "2026-02-15"}
    assert evaluator.evaluate("days_between(start, end)", bindings) == 5
    assert evaluator.evaluate("date(start).year", bindings) == 2026
    assert evaluator.evaluate("add_days(start, 30).isoformat()", bindings) == "2026-03-12"
    assert evaluator.evaluate("(date(end) - date(start)).days", bindings) == 5
    assert evaluator.evaluate("years_between('2000-06-15', '2026-06-14')", {}) == 25


@pytest.mark.parametrize(
    "formula",
    [
        "__import__('os').system('echo hi')",
        "a.__class__",
        "(lambda: 1)()",
        "[x for x in a]",
        "open('/etc/passwd')",
        "a.format(1)",
        "{'k': 1}",
        "f'{a}'",
        "a := 1",
    ],
)
def test_forbidden_constructs_are_rejected(evaluator: FormulaEvaluator, formula: str) -> None:
    with pytest.raises(FormulaError):
        evaluator.evaluate(formula, {"a": "text"})


def test_forbidden_construct_rejected_even_in_untaken_branch(evaluator: FormulaEvaluator) -> None:
    with pytest.raises(FormulaError, match="Unsupported syntax"):
        evaluator.evaluate("1 if True else (lambda: 2)()", {})


def test_unknown_name_is_reported(evaluator: FormulaEvaluator) -> None:
    with pytest.raises(FormulaError, match="Unknown name 'missing'"):
        evaluator.evaluate("missing + 1", {})


def test_function_must_be_called(evaluator: FormulaEvaluator) -> None:
    with pytest.raises(FormulaError, match="must be called"):
        evaluator.evaluate("sqrt", {})


def test_runtime_errors_are_wrapped(evaluator: FormulaEvaluator) -> None:
    with pytest.raises(FormulaError, match="ZeroDivisionError") as excinfo:
        evaluator.evaluate("a / b", {"a": 1, "b": 0})
    assert excinfo.value.formula == "a / b"

    with pytest.raises(FormulaError, match="TypeError"):
        evaluator.evaluate("a + b", {"a": 1, "b": "x"})


def test_malformed_formula(evaluator: FormulaEvaluator) -> None:
    with pytest.raises(FormulaError, match="Malformed formula"):
        evaluator.evaluate("a +", {"a": 1})


def test_empty_and_oversized_formulas() -> None:
    evaluator = FormulaEvaluator(max_length=10)

    with pytest.raises(FormulaError, match="empty"):
        evaluator.compile("  ")
    with pytest.raises(FormulaError, match="exceeds 10 characters"):
        evaluator.compile("a + b + c + d")


def test_large_powers_and_repetitions_are_rejected(evaluator: FormulaEvaluator) -> None:
    with pytest.raises(FormulaError, match="Exponent"):
        evaluator.evaluate("2 ** 1000", {})
    with pytest.raises(FormulaError, match="too large"):
        evaluator.evaluate("(10 ** 50) ** 90", {})
    with pytest.raises(FormulaError, match="too long"):
        evaluator.evaluate("'ab' * 100000", {})


def test_compile_is_cached(evaluator: FormulaEvaluator) -> None:
    first = evaluator.compile("a + 1")
    assert evaluator.compile("a + 1") is first


def test_compile_cache_is_bounded() -> None:
    evaluator = FormulaEvaluator()
    first = evaluator.compile("a + 0")

    for offset in range(1, 400):
        evaluator.compile(f"a + {offset}")

    assert evaluator.compile("a + 0") is not first
    assert evaluator.compile("a + 399").body.right.value == 399


def test_extra_functions_are_available() -> None:
    evaluator = FormulaEvaluator(functions={"double": lambda value: value * 2})
    assert evaluator.evaluate("double(a)", {"a": 4}) == 8


def test_parse_int_and_float_helpers() -> None:
    assert parse_int("  -12abc") == -12
    assert parse_int(3.9) == 3
    assert math.isnan(parse_int("abc"))
    assert parse_float(".5") == 0.5
    assert parse_float("1e3x") == 1000.0
    assert math.isnan(parse_float("x1"))


def test_date_helpers() -> None:
    assert to_date(datetime(2026, 1, 2, 10, 30)) == date(2026, 1, 2)  # noqa: DTZ001
    assert to_date("2026-01-02") == date(2026, 1, 2)
    assert days_between("2026-01-02", "2026-01-01") == -1
    assert add_days(date(2026, 12, 31), 1) == date(2027, 1, 1)
    assert years_between("2000-02-29", "2026-02-28") == 25
