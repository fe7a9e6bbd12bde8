"""Find where rules use a schema attribute."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ruleengine.rules.models import Condition, ModifyAction, RuleDefinition, walk_conditions
from ruleengine.runtime.paths import normalize_path, references

CONDITION = "condition"
ACTION = "action"


@dataclass(frozen=True)
class Usage:
    location: str
    detail: str


def path_uses(path: Any, attribute: str, schema_name: str | None = None) -> bool:
    """True when ``path`` (prefixed or not) is ``attribute`` or one of its descendants."""
    if not isinstance(path, str) or not path:
        return False
    return references(normalize_path(path, schema_name), normalize_path(attribute, schema_name))


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return "[" + ", ".join(_format_value(item) for item in value) + "]"
    return str(value)


def condition_detail(condition: Condition) -> str:
    detail = f"{condition.fact} {condition.operator.value}"
    if condition.value is not None:
        detail += f" {_format_value(condition.value)}"
    return detail


def condition_uses(condition: Condition, attribute: str, schema_name: str | None = None) -> bool:
    if path_uses(condition.fact, attribute, schema_name):
        return True
    return condition.value_is_field and path_uses(condition.value, attribute, schema_name)


def action_uses(action, attribute: str, schema_name: str | None = None) -> bool:
    if path_uses(action.target_field, attribute, schema_name):
        return True
    return isinstance(action, ModifyAction) and action.value_is_field and path_uses(action.value, attribute, schema_name)


def find_usages(definition: RuleDefinition, attribute: str, schema_name: str | None = None) -> list[Usage]:
    """Every condition and action of ``definition`` that references ``attribute``."""
    usages = [
        Usage(CONDITION, condition_detail(condition))
        for condition in walk_conditions(definition.conditions)
        if condition_uses(condition, attribute, schema_name)
    ]
    usages.extend(
        Usage(ACTION, f"{action.type} {action.target_field or ''}".rstrip())
        for action in definition.actions
        if action_uses(action, attribute, schema_name)
    )
    return usages


def risk_level(affected: int) -> str:
    if affected == 0:
        return "none"
    if affected <= 2:
        return "low"
    if affected <= 5:
        return "medium"
    return "high"
