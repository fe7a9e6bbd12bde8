"""Readable DRL-style rendering of a rule, for display and debugging only.

The engine never executes this text; it evaluates the definition itself.
"""

from __future__ import annotations

import json
from typing import Any

from .models import (
    Condition,
    ConditionGroup,
    GroupOperator,
    InsertAction,
    LogAction,
    ModifyAction,
    RetractAction,
    RuleDefinition,
    WebhookAction,
)

INDENT = "    "


def _literal(value: Any) -> str:
    return json.dumps(value)


def render_condition(condition: Condition) -> str:
    if condition.value_is_field:
        right = str(condition.value)
    elif condition.operator.value in ("isNull", "isNotNull"):
        return f"{condition.fact} {condition.operator.value}"
    else:
        right = _literal(condition.value)
    return f"{condition.fact} {condition.operator.value} {right}"


def render_group(group: ConditionGroup, top_level: bool = False) -> str:
    if not group.conditions:
        return ""
    joiner = ", " if group.operator == GroupOperator.ALL else " || "
    if not top_level and group.operator == GroupOperator.ALL:
        joiner = " && "
    parts = [
        render_group(node) if isinstance(node, ConditionGroup) else render_condition(node)
        for node in group.conditions
    ]
    text = joiner.join(part for part in parts if part)
    return text if top_level else f"({text})"


def _render_action(action: Any) -> str:
    if isinstance(action, ModifyAction):
        if action.value_expression:
            value = action.value_expression
        elif action.value_is_field:
            value = str(action.value)
        else:
            value = _literal(action.value)
        return f"modify($fact) {{ {action.target_field} = {value} }};"
    if isinstance(action, InsertAction):
        return f"insert(new {action.fact_type}({_literal(action.fact_data)}));"
    if isinstance(action, RetractAction):
        return "retract($fact);"
    if isinstance(action, LogAction):
        return f"log({_literal(action.log_message)});"
    if isinstance(action, WebhookAction):
        return f"webhook({action.webhook_method.upper()}, {_literal(action.webhook_url)});"
    return f"// unsupported action {getattr(action, 'type', '?')}"


def render_rule(definition: RuleDefinition, schema_name: str) -> str:
    """Render a rule as DRL-like text."""
    lines = [f'rule "{definition.name}"']
    if definition.priority:
        lines.append(f"{INDENT}salience {definition.priority}")
    if definition.effective_no_loop:
        lines.append(f"{INDENT}no-loop true")
    if definition.lock_on_active:
        lines.append(f"{INDENT}lock-on-active true")
    if definition.activation_group:
        lines.append(f'{INDENT}activation-group "{definition.activation_group}"')
    if definition.date_effective:
        lines.append(f'{INDENT}date-effective "{definition.date_effective}"')
    if definition.date_expires:
        lines.append(f'{INDENT}date-expires "{definition.date_expires}"')
    if not definition.enabled:
        lines.append(f"{INDENT}enabled false")

    lines.append(f"{INDENT}when")
    lines.append(f"{INDENT * 2}$fact : {schema_name}({render_group(definition.conditions, top_level=True)})")
    lines.append(f"{INDENT}then")
    for action in definition.actions:
        lines.append(f"{INDENT * 2}{_render_action(action)}")
    lines.append("end")
    return "\n".join(lines) + "\n"
