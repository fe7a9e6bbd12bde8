"""Rule definition model: condition tree, action list and metadata.

The JSON form of :class:`RuleDefinition` is what gets stored and what the
engine evaluates. Keys are camelCase on the wire.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any, Iterator, Literal, Union

from pydantic import AliasChoices, Discriminator, Field, Tag, field_validator

from ruleengine.core.models import CamelModel
from ruleengine.core.temporal import parse_temporal


# =============================================================================
# Conditions
# =============================================================================


class ConditionOperator(str, Enum):
    """Comparison operators available to a condition."""
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    GREATER_THAN = "greaterThan"
    GREATER_THAN_OR_EQUALS = "greaterThanOrEquals"
    LESS_THAN = "lessThan"
    LESS_THAN_OR_EQUALS = "lessThanOrEquals"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    MATCHES = "matches"
    MEMBER_OF = "memberOf"
    NOT_MEMBER_OF = "notMemberOf"
    IS_NULL = "isNull"
    IS_NOT_NULL = "isNotNull"
    BEFORE = "before"
    AFTER = "after"


# Operators whose right-hand side is ignored
UNARY_OPERATORS = frozenset({ConditionOperator.IS_NULL, ConditionOperator.IS_NOT_NULL})

# Operators whose right-hand side is a list of candidates
LIST_OPERATORS = frozenset({ConditionOperator.MEMBER_OF, ConditionOperator.NOT_MEMBER_OF})

_SYMBOLIC_OPERATORS = {
    "==": "equals",
    "!=": "notEquals",
    ">": "greaterThan",
    ">=": "greaterThanOrEquals",
    "<": "lessThan",
    "<=": "lessThanOrEquals",
    "in": "memberOf",
    "not in": "notMemberOf",
}


class GroupOperator(str, Enum):
    ALL = "all"
    ANY = "any"


class Condition(CamelModel):
    """A single comparison of a fact path against a literal or another path."""

    fact: str = Field(..., min_length=1)
    operator: ConditionOperator
    value: Any = None
    value_is_field: bool = False

    @field_validator("operator", mode="before")
    @classmethod
    def _symbolic_operator(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _SYMBOLIC_OPERATORS.get(value.strip().lower(), value.strip())
        return value


class ConditionGroup(CamelModel):
    """Short-circuit AND (``all``) or OR (``any``) over child nodes."""

    operator: GroupOperator = GroupOperator.ALL
    conditions: list[ConditionNode] = Field(default_factory=list)

    @field_validator("operator", mode="before")
    @classmethod
    def _group_operator(cls, value: Any) -> Any:
        if isinstance(value, str):
            lowered = value.strip().lower()
            return {"and": "all", "or": "any"}.get(lowered, lowered)
        return value

    @field_validator("conditions", mode="before")
    @classmethod
    def _unwrap_nested(cls, value: Any) -> Any:
        # Older payloads wrap child groups as {"nested": {...}}
        if isinstance(value, list):
            return [
                item["nested"] if isinstance(item, dict) and isinstance(item.get("nested"), dict) else item
                for item in value
            ]
        return value


def _node_kind(value: Any) -> str:
    if isinstance(value, dict):
        return "group" if "conditions" in value else "condition"
    return "group" if isinstance(value, ConditionGroup) else "condition"


ConditionNode = Annotated[
    Union[Annotated[ConditionGroup, Tag("group")], Annotated[Condition, Tag("condition")]],
    Discriminator(_node_kind),
]

ConditionGroup.model_rebuild()


def walk_conditions(group: ConditionGroup) -> Iterator[Condition]:
    """Yield every condition in the tree, depth first."""
    for node in group.conditions:
        if isinstance(node, ConditionGroup):
            yield from walk_conditions(node)
        else:
            yield node


# =============================================================================
# Actions
# =============================================================================


class ActionType(str, Enum):
    MODIFY = "MODIFY"
    INSERT = "INSERT"
    RETRACT = "RETRACT"
    LOG = "LOG"
    WEBHOOK = "WEBHOOK"


class ActionBase(CamelModel):
    target_field: str | None = None


class ModifyAction(ActionBase):
    """Set ``target_field`` to a literal, another field, or an arithmetic expression."""

    type: Literal["MODIFY"] = "MODIFY"
    target_field: str = Field(..., min_length=1)
    value: Any = None
    value_is_field: bool = False
    value_expression: str | None = None


class InsertAction(ActionBase):
    type: Literal["INSERT"] = "INSERT"
    fact_type: str = Field(..., min_length=1)
    fact_data: dict[str, Any] = Field(default_factory=dict)


class RetractAction(ActionBase):
    type: Literal["RETRACT"] = "RETRACT"


class LogAction(ActionBase):
    type: Literal["LOG"] = "LOG"
    log_message: str = Field(
        default="",
        validation_alias=AliasChoices("logMessage", "log_message", "message"),
        serialization_alias="logMessage",
    )


class WebhookAction(ActionBase):
    type: Literal["WEBHOOK"] = "WEBHOOK"
    webhook_url: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("webhookUrl", "webhook_url", "url"),
        serialization_alias="webhookUrl",
    )
    webhook_method: str = Field(
        default="POST",
        validation_alias=AliasChoices("webhookMethod", "webhook_method", "method"),
        serialization_alias="webhookMethod",
    )
    webhook_headers: dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("webhookHeaders", "webhook_headers", "headers"),
        serialization_alias="webhookHeaders",
    )
    webhook_body_template: str | None = Field(
        default=None,
        validation_alias=AliasChoices("webhookBodyTemplate", "webhook_body_template", "bodyTemplate"),
        serialization_alias="webhookBodyTemplate",
    )


Action = Annotated[
    Union[ModifyAction, InsertAction, RetractAction, LogAction, WebhookAction],
    Field(discriminator="type"),
]


# =============================================================================
# Rule definition
# =============================================================================


class RuleDefinition(CamelModel):
    """Complete authored rule, bound to exactly one schema."""

    name: str = Field(..., min_length=1)
    description: str | None = None
    schema_id: int
    project_id: int | None = None
    priority: int = 0
    enabled: bool = True
    category: str | None = None
    conditions: ConditionGroup = Field(default_factory=ConditionGroup)
    actions: list[Action] = Field(default_factory=list)
    activation_group: str | None = None
    lock_on_active: bool = False
    no_loop: bool | None = None
    date_effective: str | None = None
    date_expires: str | None = None

    @field_validator("actions", mode="before")
    @classmethod
    def _action_type_case(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [
                {**item, "type": item["type"].upper()}
                if isinstance(item, dict) and isinstance(item.get("type"), str)
                else item
                for item in value
            ]
        return value

    @field_validator("activation_group", "category", "date_effective", "date_expires", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("date_effective", "date_expires")
    @classmethod
    def _iso_date(cls, value: str | None) -> str | None:
        if value is not None:
            parse_temporal(value)
        return value

    @property
    def effective_no_loop(self) -> bool:
        """Explicit ``noLoop`` wins; otherwise any MODIFY action implies it."""
        if self.no_loop is not None:
            return self.no_loop
        return any(isinstance(action, ModifyAction) for action in self.actions)

    def clone(self) -> RuleDefinition:
        return self.model_copy(deep=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, text: str) -> RuleDefinition:
        return cls.model_validate_json(text)
