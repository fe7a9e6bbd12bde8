"""Create/update-time validation of rule definitions against a schema.

Errors carry the JSON field path of the offending element, e.g.
``conditions.conditions[1].value``.
"""

from __future__ import annotations

import re
from typing import Any

from ruleengine.core.errors import ValidationError
from ruleengine.core.temporal import as_utc_datetime, parse_temporal
from ruleengine.runtime.expressions import referenced_paths
from ruleengine.schema_registry.model import SchemaModel, TypeInfo, python_type_name, value_matches_type
from .models import (
    LIST_OPERATORS,
    UNARY_OPERATORS,
    Condition,
    ConditionGroup,
    ConditionOperator,
    ModifyAction,
    RuleDefinition,
    WebhookAction,
)

WEBHOOK_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})

_NUMERIC_OPERATORS = frozenset({
    ConditionOperator.GREATER_THAN,
    ConditionOperator.GREATER_THAN_OR_EQUALS,
    ConditionOperator.LESS_THAN,
    ConditionOperator.LESS_THAN_OR_EQUALS,
})


def validate_rule(definition: RuleDefinition, schema: SchemaModel) -> None:
    """Raise ValidationError on the first problem found."""
    _validate_group(definition.conditions, schema, "conditions")
    _validate_actions(definition, schema)
    _validate_dates(definition)


def _require_path(schema: SchemaModel, path: Any, field: str) -> TypeInfo:
    if not isinstance(path, str) or not path:
        raise ValidationError("A field path is required", field=field)
    info = schema.type_of(path)
    if info is None:
        raise ValidationError(f"Field '{path}' does not exist in schema '{schema.name}'", field=field)
    return info


def _check_value(path: str, value: Any, info: TypeInfo, field: str) -> None:
    if info.opaque or value is None:
        return
    if not value_matches_type(value, info.type, info.format):
        raise ValidationError(
            f"Field '{path}' expects {info.type} type, but got {python_type_name(value)}", field=field
        )


def _is_temporal(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        parse_temporal(value)
    except ValueError:
        return False
    return True


def _validate_group(group: ConditionGroup, schema: SchemaModel, field: str) -> None:
    for i, node in enumerate(group.conditions):
        location = f"{field}.conditions[{i}]"
        if isinstance(node, ConditionGroup):
            _validate_group(node, schema, location)
        else:
            _validate_condition(node, schema, location)


def _validate_condition(condition: Condition, schema: SchemaModel, field: str) -> None:
    info = _require_path(schema, condition.fact, f"{field}.fact")
    operator = condition.operator
    value = condition.value
    value_field = f"{field}.value"

    if operator in UNARY_OPERATORS:
        return
    if condition.value_is_field:
        _require_path(schema, value, value_field)
        return

    if operator in LIST_OPERATORS:
        if not isinstance(value, list):
            raise ValidationError(f"Operator '{operator.value}' expects a list of values", field=value_field)
        for item in value:
            _check_value(condition.fact, item, info, value_field)
    elif operator == ConditionOperator.MATCHES:
        if not isinstance(value, str):
            raise ValidationError("Operator 'matches' expects a regular expression string", field=value_field)
        try:
            re.compile(value)
        except re.error as exc:
            raise ValidationError(f"Invalid regular expression '{value}': {exc}", field=value_field) from exc
    elif operator in (ConditionOperator.BEFORE, ConditionOperator.AFTER):
        if not _is_temporal(value):
            raise ValidationError(
                f"Operator '{operator.value}' expects an ISO-8601 date, but got {value!r}", field=value_field
            )
    elif operator in _NUMERIC_OPERATORS:
        if not value_matches_type(value, "number"):
            raise ValidationError(
                f"Operator '{operator.value}' expects a number, but got {python_type_name(value)}", field=value_field
            )
        if not info.opaque and info.type not in ("integer", "number"):
            raise ValidationError(
                f"Field '{condition.fact}' is {info.type}; '{operator.value}' needs a numeric field",
                field=f"{field}.operator",
            )
    elif operator in (ConditionOperator.CONTAINS, ConditionOperator.NOT_CONTAINS) and info.type == "array":
        items = schema.type_of(f"{condition.fact}[]")
        if items is not None:
            _check_value(condition.fact, value, items, value_field)
    else:
        _check_value(condition.fact, value, info, value_field)


def _validate_actions(definition: RuleDefinition, schema: SchemaModel) -> None:
    for i, action in enumerate(definition.actions):
        location = f"actions[{i}]"
        if isinstance(action, ModifyAction):
            info = _require_path(schema, action.target_field, f"{location}.targetField")
            if action.value_expression:
                try:
                    paths = referenced_paths(action.value_expression)
                except ValidationError as exc:
                    raise ValidationError(exc.message, field=f"{location}.valueExpression") from exc
                for path in paths:
                    operand = _require_path(schema, path, f"{location}.valueExpression")
                    if not operand.opaque and operand.type not in ("integer", "number"):
                        raise ValidationError(
                            f"Expression operand '{path}' is {operand.type}; expressions need numeric fields",
                            field=f"{location}.valueExpression",
                        )
            elif action.value_is_field:
                _require_path(schema, action.value, f"{location}.value")
            else:
                _check_value(action.target_field, action.value, info, f"{location}.value")
        elif action.target_field:
            _require_path(schema, action.target_field, f"{location}.targetField")

        if isinstance(action, WebhookAction):
            if not action.webhook_url.startswith(("http://", "https://")):
                raise ValidationError("Webhook URL must start with http:// or https://", field=f"{location}.webhookUrl")
            if action.webhook_method.upper() not in WEBHOOK_METHODS:
                raise ValidationError(
                    f"Unsupported webhook method '{action.webhook_method}'", field=f"{location}.webhookMethod"
                )


def _validate_dates(definition: RuleDefinition) -> None:
    if definition.date_effective and definition.date_expires:
        start = as_utc_datetime(parse_temporal(definition.date_effective))
        end = as_utc_datetime(parse_temporal(definition.date_expires))
        if start > end:
            raise ValidationError("dateEffective must not be after dateExpires", field="dateExpires")
