"""Synthesis of a minimal fact that satisfies a rule's conditions.

Works backwards from each condition: ``equals`` copies the value,
``greaterThan`` adds one, ``startsWith`` appends a suffix, and so on. For
``any`` groups only the first child is satisfied.
"""

from __future__ import annotations

import copy
import re
from datetime import timedelta
from typing import Any

from ruleengine.core.temporal import parse_temporal
from ruleengine.runtime.fact import Fact
from ruleengine.runtime.paths import normalize_path
from ruleengine.schema_registry.model import SchemaModel
from .models import Condition, ConditionGroup, ConditionOperator, GroupOperator, RuleDefinition

_UNSET = object()
_REGEX_META = re.compile(r"[\\^$.|?*+()\[\]{}]")

TYPE_DEFAULTS: dict[str, Any] = {
    "integer": 100,
    "number": 100,
    "boolean": True,
    "array": [],
    "object": {},
}
STRING_DEFAULT = "sample_value"


def default_for(type_name: str | None) -> Any:
    return copy.deepcopy(TYPE_DEFAULTS.get(type_name or "string", STRING_DEFAULT))


def _different(value: Any) -> Any:
    if isinstance(value, bool):
        return not value
    if isinstance(value, (int, float)):
        return value + 100
    if isinstance(value, str):
        return f"{value}_different"
    if isinstance(value, list):
        return [*value, "_different"]
    return STRING_DEFAULT


def _shift_date(value: Any, days: int) -> Any:
    if not isinstance(value, str):
        return value
    try:
        parsed = parse_temporal(value)
    except ValueError:
        return value
    return (parsed + timedelta(days=days)).isoformat()


def matching_value(condition: Condition, field_type: str | None) -> Any:
    """A value for the condition's field that makes it true."""
    operator = condition.operator
    value = condition.value

    if operator == ConditionOperator.EQUALS:
        return copy.deepcopy(value)
    if operator == ConditionOperator.NOT_EQUALS:
        return _different(value) if value is not None else default_for(field_type)
    if operator == ConditionOperator.GREATER_THAN:
        return value + 1 if isinstance(value, (int, float)) else default_for(field_type)
    if operator in (ConditionOperator.GREATER_THAN_OR_EQUALS, ConditionOperator.LESS_THAN_OR_EQUALS):
        return value
    if operator == ConditionOperator.LESS_THAN:
        return value - 1 if isinstance(value, (int, float)) else default_for(field_type)
    if operator == ConditionOperator.CONTAINS:
        return [copy.deepcopy(value)] if field_type == "array" else value
    if operator == ConditionOperator.NOT_CONTAINS:
        if field_type == "array":
            return []
        return "" if value not in (None, "") else STRING_DEFAULT
    if operator == ConditionOperator.STARTS_WITH:
        return f"{value}_x"
    if operator == ConditionOperator.ENDS_WITH:
        return f"x_{value}"
    if operator == ConditionOperator.MATCHES:
        return _REGEX_META.sub("", value) if isinstance(value, str) else STRING_DEFAULT
    if operator == ConditionOperator.MEMBER_OF:
        return copy.deepcopy(value[0]) if isinstance(value, list) and value else default_for(field_type)
    if operator == ConditionOperator.NOT_MEMBER_OF:
        candidate = default_for(field_type)
        while isinstance(value, list) and candidate in value:
            candidate = _different(candidate)
        return candidate
    if operator == ConditionOperator.IS_NULL:
        return _UNSET
    if operator == ConditionOperator.IS_NOT_NULL:
        return default_for(field_type)
    if operator == ConditionOperator.BEFORE:
        return _shift_date(value, -1)
    if operator == ConditionOperator.AFTER:
        return _shift_date(value, 1)
    return copy.deepcopy(value)


def generate_match_payload(definition: RuleDefinition, schema: SchemaModel) -> dict[str, Any]:
    """Build a fact map that satisfies ``definition``'s conditions."""
    fact = Fact(schema.name)
    _satisfy_group(definition.conditions, fact, schema)
    return fact.data


def _satisfy_group(group: ConditionGroup, fact: Fact, schema: SchemaModel) -> None:
    nodes = group.conditions
    if group.operator == GroupOperator.ANY:
        nodes = nodes[:1]
    for node in nodes:
        if isinstance(node, ConditionGroup):
            _satisfy_group(node, fact, schema)
        else:
            _satisfy_condition(node, fact, schema)


def _satisfy_condition(condition: Condition, fact: Fact, schema: SchemaModel) -> None:
    path = normalize_path(condition.fact, schema.name)
    info = schema.type_of(path)
    field_type = info.type if info is not None else None

    if condition.value_is_field and isinstance(condition.value, str):
        other = normalize_path(condition.value, schema.name)
        other_info = schema.type_of(other)
        current = fact.get(other)
        if current is None:
            current = default_for(other_info.type if other_info else field_type)
            fact.set(other, current)
        resolved = condition.model_copy(update={"value": current, "value_is_field": False})
        value = matching_value(resolved, field_type)
    else:
        value = matching_value(condition, field_type)

    if value is not _UNSET:
        fact.set(path, value)
