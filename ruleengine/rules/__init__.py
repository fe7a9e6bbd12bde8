"""Rules domain - rule definitions, validation and rendering."""

from .models import (
    Action,
    ActionType,
    Condition,
    ConditionGroup,
    ConditionNode,
    ConditionOperator,
    GroupOperator,
    InsertAction,
    LogAction,
    ModifyAction,
    RetractAction,
    RuleDefinition,
    WebhookAction,
    walk_conditions,
)

__all__ = [
    "Action",
    "ActionType",
    "Condition",
    "ConditionGroup",
    "ConditionNode",
    "ConditionOperator",
    "GroupOperator",
    "InsertAction",
    "LogAction",
    "ModifyAction",
    "RetractAction",
    "RuleDefinition",
    "WebhookAction",
    "walk_conditions",
]
