"""Rewrite rule definitions after an attribute rename or delete.

Rewriters never mutate their input; they return a fresh definition and a
flag telling whether anything changed.
"""

from __future__ import annotations

from ruleengine.rules.models import Condition, ConditionGroup, ModifyAction, RuleDefinition
from ruleengine.runtime.paths import normalize_path
from .analyzer import action_uses, condition_uses, find_usages, path_uses


def uses_attribute(definition: RuleDefinition, attribute: str, schema_name: str | None = None) -> bool:
    return bool(find_usages(definition, attribute, schema_name))


def rename_path(path: str, old_name: str, new_name: str, schema_name: str | None = None) -> str:
    """Swap the ``old_name`` part of ``path``, keeping any schema prefix and descendants."""
    normalized = normalize_path(path, schema_name)
    prefix = path[: len(path) - len(normalized)]
    old = normalize_path(old_name, schema_name)
    return prefix + normalize_path(new_name, schema_name) + normalized[len(old):]


def _rename_group(group: ConditionGroup, old_name: str, new_name: str, schema_name: str | None) -> bool:
    changed = False
    for node in group.conditions:
        if isinstance(node, ConditionGroup):
            changed = _rename_group(node, old_name, new_name, schema_name) or changed
            continue
        if path_uses(node.fact, old_name, schema_name):
            node.fact = rename_path(node.fact, old_name, new_name, schema_name)
            changed = True
        if node.value_is_field and path_uses(node.value, old_name, schema_name):
            node.value = rename_path(node.value, old_name, new_name, schema_name)
            changed = True
    return changed


def rename_in_rule(
    definition: RuleDefinition, old_name: str, new_name: str, schema_name: str | None = None
) -> tuple[RuleDefinition, bool]:
    rule = definition.clone()
    if normalize_path(old_name, schema_name) == normalize_path(new_name, schema_name):
        return rule, False

    changed = _rename_group(rule.conditions, old_name, new_name, schema_name)
    for action in rule.actions:
        if path_uses(action.target_field, old_name, schema_name):
            action.target_field = rename_path(action.target_field, old_name, new_name, schema_name)
            changed = True
        if isinstance(action, ModifyAction) and action.value_is_field and path_uses(action.value, old_name, schema_name):
            action.value = rename_path(action.value, old_name, new_name, schema_name)
            changed = True
    return rule, changed


def _prune_group(group: ConditionGroup, attribute: str, schema_name: str | None) -> bool:
    changed = False
    kept: list[Condition | ConditionGroup] = []
    for node in group.conditions:
        if isinstance(node, ConditionGroup):
            changed = _prune_group(node, attribute, schema_name) or changed
            # A group emptied by the prune would otherwise match everything
            if node.conditions:
                kept.append(node)
            else:
                changed = True
        elif condition_uses(node, attribute, schema_name):
            changed = True
        else:
            kept.append(node)
    group.conditions = kept
    return changed


def delete_in_rule(
    definition: RuleDefinition, attribute: str, schema_name: str | None = None
) -> tuple[RuleDefinition, bool]:
    """Drop every condition and action referencing ``attribute``."""
    rule = definition.clone()
    changed = _prune_group(rule.conditions, attribute, schema_name)
    actions = [action for action in rule.actions if not action_uses(action, attribute, schema_name)]
    if len(actions) != len(rule.actions):
        rule.actions = actions
        changed = True
    return rule, changed
