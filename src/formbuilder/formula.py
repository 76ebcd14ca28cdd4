"""Sandboxed evaluation of derived-field formulas.

Formulas are small Python-syntax expressions such as ``price * quantity`` or
``years_between(birth_date, today())``. They are parsed with :mod:`ast` and
interpreted node by node over an allowlist: only literals, bound names,
arithmetic, comparisons, boolean logic, conditional expressions, subscripts,
a fixed set of functions and a few string/date methods are accepted. Nothing
is ever handed to ``eval`` or ``exec``.
"""

from __future__ import annotations

import ast
import math
import operator
import re
from datetime import date as date_type
from datetime import datetime as datetime_type
from datetime import timedelta
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from dateutil import parser as dateutil_parser

from formbuilder.exceptions import FormulaError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

_MAX_EXPONENT = 100
_MAX_POW_BITS = 4096
_MAX_SEQUENCE_LENGTH = 10_000
_COMPILE_CACHE_SIZE = 256

_INT_PREFIX = re.compile(r"^[+-]?\d+")
_FLOAT_PREFIX = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

_BINARY_OPERATORS: dict[type[ast.operator], Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPERATORS: dict[type[ast.unaryop], Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.Not: operator.not_,
}

_COMPARISON_OPERATORS: dict[type[ast.cmpop], Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda left, right: left in right,
    ast.NotIn: lambda left, right: left not in right,
}

_ALLOWED_NODES: tuple[type[ast.AST], ...] = (
    ast.Expression,
    ast.Constant,
    ast.Name,
    ast.Load,
    ast.BinOp,
    ast.UnaryOp,
    ast.BoolOp,
    ast.And,
    ast.Or,
    ast.Compare,
    ast.IfExp,
    ast.Call,
    ast.keyword,
    ast.Attribute,
    ast.Subscript,
    ast.Slice,
    ast.List,
    ast.Tuple,
    *_BINARY_OPERATORS,
    *_UNARY_OPERATORS,
    *_COMPARISON_OPERATORS,
)

_ALLOWED_ATTRIBUTES = frozenset({"year", "month", "day", "hour", "minute", "second", "days", "seconds"})

_ALLOWED_METHODS: dict[type, frozenset[str]] = {
    str: frozenset(
        {
            "capitalize",
            "endswith",
            "lower",
            "lstrip",
            "rstrip",
            "split",
            "startswith",
            "strip",
            "title",
            "upper",
        },
    ),
    date_type: frozenset({"isoformat", "strftime", "weekday"}),
    timedelta: frozenset({"total_seconds"}),
}

_RUNTIME_ERRORS = (
    ArithmeticError,
    AttributeError,
    IndexError,
    KeyError,
    TypeError,
    ValueError,
    RecursionError,
)


def parse_int(value: Any) -> float | int:
    """Parse the leading integer of a value, NaN when there is none."""
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else math.nan
    match = _INT_PREFIX.match(str(value).strip())
    return int(match.group()) if match else math.nan


def parse_float(value: Any) -> float:
    """Parse the leading decimal number of a value, NaN when there is none."""
    if isinstance(value, (int, float)):
        return float(value)
    match = _FLOAT_PREFIX.match(str(value).strip())
    return float(match.group()) if match else math.nan


def to_datetime(value: Any = None) -> datetime_type:
    """Build a datetime from a datetime, a date or a parseable string."""
    if value is None:
        return datetime_type.now()  # noqa: DTZ005
    if isinstance(value, datetime_type):
        return value
    if isinstance(value, date_type):
        return datetime_type(value.year, value.month, value.day)  # noqa: DTZ001
    return dateutil_parser.parse(str(value))


def to_date(value: Any = None) -> date_type:
    """Build a date from a datetime, a date or a parseable string."""
    if value is None:
        return date_type.today()  # noqa: DTZ011
    if isinstance(value, datetime_type):
        return value.date()
    if isinstance(value, date_type):
        return value
    return dateutil_parser.parse(str(value)).date()


def days_between(start: Any, end: Any) -> int:
    """Return the signed number of days from `start` to `end`."""
    return (to_date(end) - to_date(start)).days


def add_days(value: Any, days: Any) -> date_type:
    """Shift a date by a whole number of days."""
    return to_date(value) + timedelta(days=int(days))


def years_between(start: Any, end: Any) -> int:
    """Return the number of full years from `start` to `end` (e.g. an age)."""
    first, last = to_date(start), to_date(end)
    years = last.year - first.year
    if (last.month, last.day) < (first.month, first.day):
        years -= 1
    return years


def _safe_pow(base: Any, exponent: Any) -> Any:
    if isinstance(exponent, (int, float)) and abs(exponent) > _MAX_EXPONENT:
        raise FormulaError(message=f"Exponent {exponent} exceeds the allowed magnitude")
    if isinstance(base, int) and isinstance(exponent, int) and exponent > 0:
        if abs(base).bit_length() * exponent > _MAX_POW_BITS:
            raise FormulaError(message="Power result is too large")
    return operator.pow(base, exponent)


def _safe_mul(left: Any, right: Any) -> Any:
    for sequence, count in ((left, right), (right, left)):
        if isinstance(sequence, (str, list, tuple)) and isinstance(count, int):
            if len(sequence) * count > _MAX_SEQUENCE_LENGTH:
                raise FormulaError(message="Repeated sequence is too long")
    return operator.mul(left, right)


DEFAULT_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "abs": abs,
    "round": round,
    "min": min,
    "max": max,
    "sum": sum,
    "len": len,
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "floor": math.floor,
    "ceil": math.ceil,
    "sqrt": math.sqrt,
    "pow": _safe_pow,
    "parse_int": parse_int,
    "parse_float": parse_float,
    "parseInt": parse_int,
    "parseFloat": parse_float,
    "date": to_date,
    "datetime": to_datetime,
    "today": to_date,
    "now": to_datetime,
    "days_between": days_between,
    "add_days": add_days,
    "years_between": years_between,
}


class FormulaEvaluator:
    """Parse, check and evaluate formulas against named bindings.

    Args:
        max_length: Longest accepted formula.
        functions: Extra functions made available to formulas, merged over
            :data:`DEFAULT_FUNCTIONS`.
    """

    def __init__(
        self,
        *,
        max_length: int = 2000,
        functions: Mapping[str, Callable[..., Any]] | None = None,
    ) -> None:
        self.max_length = max_length
        self.functions: dict[str, Callable[..., Any]] = {**DEFAULT_FUNCTIONS, **(functions or {})}
        self._compile_cached = lru_cache(maxsize=_COMPILE_CACHE_SIZE)(self._parse_checked)

    def compile(self, formula: str) -> ast.Expression:
        """Parse a formula and check it only uses allowed constructs.

        Args:
            formula: Formula source.

        Raises:
            FormulaError: If the formula is empty, too long, malformed or
                uses a forbidden construct.

        Returns:
            ast.Expression: Checked expression tree (cached per formula).
        """
        return self._compile_cached(formula)

    def _parse_checked(self, formula: str) -> ast.Expression:
        source = formula.strip()
        if not source:
            raise FormulaError(message="Formula is empty", formula=formula)
        if len(source) > self.max_length:
            raise FormulaError(message=f"Formula exceeds {self.max_length} characters", formula=formula)

        try:
            tree = ast.parse(source, mode="eval")
        except (SyntaxError, ValueError, RecursionError, MemoryError) as exc:
            raise FormulaError(message=f"Malformed formula: {exc}", formula=formula) from exc

        for node in ast.walk(tree):
            if not isinstance(node, _ALLOWED_NODES):
                raise FormulaError(message=f"Unsupported syntax '{type(node).__name__}'", formula=formula)
            if isinstance(node, ast.Attribute) and node.attr.startswith("_"):
                raise FormulaError(message=f"Access to '{node.attr}' is not allowed", formula=formula)

        return tree

    def evaluate(self, formula: str, bindings: Mapping[str, Any]) -> Any:
        """Evaluate a formula.

        Args:
            formula: Formula source.
            bindings: Values visible to the formula by name.

        Raises:
            FormulaError: If the formula cannot be compiled or fails at runtime.

        Returns:
            Any: The formula result.
        """
        tree = self.compile(formula)
        try:
            return _Interpreter(bindings, self.functions).run(tree.body)
        except FormulaError as exc:
            if exc.formula is None:
                raise FormulaError(message=exc.message, formula=formula) from exc
            raise
        except _RUNTIME_ERRORS as exc:
            raise FormulaError(message=f"{type(exc).__name__}: {exc}", formula=formula) from exc


class _Interpreter:
    """Walks a checked expression tree."""

    def __init__(self, bindings: Mapping[str, Any], functions: Mapping[str, Callable[..., Any]]) -> None:
        self._bindings = bindings
        self._functions = functions

    def run(self, node: ast.expr) -> Any:
        handler = getattr(self, f"_eval_{type(node).__name__}", None)
        if handler is None:
            raise FormulaError(message=f"Unsupported syntax '{type(node).__name__}'")
        return handler(node)

    def _eval_Constant(self, node: ast.Constant) -> Any:  # noqa: N802
        if node.value is not None and not isinstance(node.value, (bool, int, float, str)):
            raise FormulaError(message=f"Unsupported literal {node.value!r}")
        return node.value

    def _eval_Name(self, node: ast.Name) -> Any:  # noqa: N802
        if node.id in self._bindings:
            return self._bindings[node.id]
        if node.id in self._functions:
            raise FormulaError(message=f"Function '{node.id}' must be called")
        raise FormulaError(message=f"Unknown name '{node.id}'")

    def _eval_BinOp(self, node: ast.BinOp) -> Any:  # noqa: N802
        left = self.run(node.left)
        right = self.run(node.right)
        if isinstance(node.op, ast.Pow):
            return _safe_pow(left, right)
        if isinstance(node.op, ast.Mult):
            return _safe_mul(left, right)
        return _BINARY_OPERATORS[type(node.op)](left, right)

    def _eval_UnaryOp(self, node: ast.UnaryOp) -> Any:  # noqa: N802
        return _UNARY_OPERATORS[type(node.op)](self.run(node.operand))

    def _eval_BoolOp(self, node: ast.BoolOp) -> Any:  # noqa: N802
        result: Any = None
        for value_node in node.values:
            result = self.run(value_node)
            if isinstance(node.op, ast.And) and not result:
                return result
            if isinstance(node.op, ast.Or) and result:
                return result
        return result

    def _eval_Compare(self, node: ast.Compare) -> bool:  # noqa: N802
        left = self.run(node.left)
        for op, comparator in zip(node.ops, node.comparators, strict=True):
            right = self.run(comparator)
            if not _COMPARISON_OPERATORS[type(op)](left, right):
                return False
            left = right
        return True

    def _eval_IfExp(self, node: ast.IfExp) -> Any:  # noqa: N802
        return self.run(node.body) if self.run(node.test) else self.run(node.orelse)

    def _eval_List(self, node: ast.List) -> list[Any]:  # noqa: N802
        return [self.run(element) for element in node.elts]

    def _eval_Tuple(self, node: ast.Tuple) -> tuple[Any, ...]:  # noqa: N802
        return tuple(self.run(element) for element in node.elts)

    def _eval_Subscript(self, node: ast.Subscript) -> Any:  # noqa: N802
        container = self.run(node.value)
        if isinstance(node.slice, ast.Slice):
            index: Any = slice(
                self._optional(node.slice.lower),
                self._optional(node.slice.upper),
                self._optional(node.slice.step),
            )
        else:
            index = self.run(node.slice)
        return container[index]

    def _eval_Attribute(self, node: ast.Attribute) -> Any:  # noqa: N802
        target = self.run(node.value)
        if node.attr not in _ALLOWED_ATTRIBUTES or not isinstance(target, (date_type, timedelta)):
            raise FormulaError(message=f"Attribute '{node.attr}' is not allowed")
        return getattr(target, node.attr)

    def _eval_Call(self, node: ast.Call) -> Any:  # noqa: N802
        args = [self.run(arg) for arg in node.args]
        kwargs = {keyword.arg: self.run(keyword.value) for keyword in node.keywords if keyword.arg}
        if len(kwargs) != len(node.keywords):
            raise FormulaError(message="Keyword unpacking is not allowed")

        if isinstance(node.func, ast.Name):
            function = self._functions.get(node.func.id)
            if function is None:
                raise FormulaError(message=f"Unknown function '{node.func.id}'")
            return function(*args, **kwargs)

        if isinstance(node.func, ast.Attribute):
            target = self.run(node.func.value)
            method = node.func.attr
            for owner, methods in _ALLOWED_METHODS.items():
                if isinstance(target, owner) and method in methods:
                    return getattr(target, method)(*args, **kwargs)
            raise FormulaError(message=f"Method '{method}' is not allowed on {type(target).__name__}")

        raise FormulaError(message="Only named functions can be called")

    def _optional(self, node: ast.expr | None) -> Any:
        return None if node is None else self.run(node)
