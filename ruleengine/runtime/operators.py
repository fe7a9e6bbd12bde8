"""Condition operator implementations.

Each operator takes the resolved left value (from the fact) and the right
value (literal or second lookup) and returns a bool. A null left value fails
every operator except ``isNull``; that check happens in the evaluator
before dispatch.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any, Callable

from ruleengine.core.errors import EvaluationError
from ruleengine.core.temporal import as_utc_datetime, parse_temporal


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_float(value: Any) -> float | None:
    return float(value) if _is_number(value) else None


def _values_equal(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return left is None and right is None
    if _is_number(left) and _is_number(right):
        return float(left) == float(right)
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> re.Pattern:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise EvaluationError(f"Invalid regular expression '{pattern}': {exc}") from exc


def _as_datetime(value: Any):
    if not isinstance(value, str):
        return None
    try:
        return as_utc_datetime(parse_temporal(value))
    except ValueError:
        return None


# Operator implementations
def _eval_equals(left: Any, right: Any) -> bool:
    """Equality with numeric widening."""
    return _values_equal(left, right)


def _eval_not_equals(left: Any, right: Any) -> bool:
    return left is not None and not _values_equal(left, right)


def _compare(left: Any, right: Any, check: Callable[[float, float], bool]) -> bool:
    lhs, rhs = _as_float(left), _as_float(right)
    if lhs is None or rhs is None:
        return False
    return check(lhs, rhs)


def _eval_greater_than(left: Any, right: Any) -> bool:
    return _compare(left, right, lambda a, b: a > b)


def _eval_greater_than_or_equals(left: Any, right: Any) -> bool:
    return _compare(left, right, lambda a, b: a >= b)


def _eval_less_than(left: Any, right: Any) -> bool:
    return _compare(left, right, lambda a, b: a < b)


def _eval_less_than_or_equals(left: Any, right: Any) -> bool:
    return _compare(left, right, lambda a, b: a <= b)


def _eval_contains(left: Any, right: Any) -> bool:
    """Substring test for strings, membership test for lists."""
    if isinstance(left, str):
        return right is not None and str(right) in left
    if isinstance(left, list):
        return any(_values_equal(item, right) for item in left)
    return False


def _eval_not_contains(left: Any, right: Any) -> bool:
    return left is not None and not _eval_contains(left, right)


def _eval_starts_with(left: Any, right: Any) -> bool:
    return isinstance(left, str) and right is not None and left.startswith(str(right))


def _eval_ends_with(left: Any, right: Any) -> bool:
    return isinstance(left, str) and right is not None and left.endswith(str(right))


def _eval_matches(left: Any, right: Any) -> bool:
    """Whole-string regular expression match."""
    if not isinstance(left, str) or not isinstance(right, str):
        return False
    return compile_pattern(right).fullmatch(left) is not None


def _eval_member_of(left: Any, right: Any) -> bool:
    if not isinstance(right, list):
        return False
    return any(_values_equal(left, candidate) for candidate in right)


def _eval_not_member_of(left: Any, right: Any) -> bool:
    if not isinstance(right, list) or left is None:
        return False
    return not _eval_member_of(left, right)


def _eval_is_null(left: Any, right: Any) -> bool:
    return left is None


def _eval_is_not_null(left: Any, right: Any) -> bool:
    return left is not None


def _eval_before(left: Any, right: Any) -> bool:
    lhs, rhs = _as_datetime(left), _as_datetime(right)
    return lhs is not None and rhs is not None and lhs < rhs


def _eval_after(left: Any, right: Any) -> bool:
    lhs, rhs = _as_datetime(left), _as_datetime(right)
    return lhs is not None and rhs is not None and lhs > rhs


OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "equals": _eval_equals,
    "notEquals": _eval_not_equals,
    "greaterThan": _eval_greater_than,
    "greaterThanOrEquals": _eval_greater_than_or_equals,
    "lessThan": _eval_less_than,
    "lessThanOrEquals": _eval_less_than_or_equals,
    "contains": _eval_contains,
    "notContains": _eval_not_contains,
    "startsWith": _eval_starts_with,
    "endsWith": _eval_ends_with,
    "matches": _eval_matches,
    "memberOf": _eval_member_of,
    "notMemberOf": _eval_not_member_of,
    "isNull": _eval_is_null,
    "isNotNull": _eval_is_not_null,
    "before": _eval_before,
    "after": _eval_after,
}


def apply_operator(operator: str, left: Any, right: Any) -> bool:
    """Run one operator; unknown names raise EvaluationError."""
    func = OPERATORS.get(operator)
    if func is None:
        raise EvaluationError(f"Unknown operator '{operator}'")
    return func(left, right)
