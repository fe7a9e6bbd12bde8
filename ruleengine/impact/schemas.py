"""Pydantic models for attribute impact analysis and propagation."""

from typing import Literal

from pydantic import Field

from ruleengine.core.models import CamelModel


class UsageResponse(CamelModel):
    location: Literal["condition", "action"]
    detail: str


class AffectedRule(CamelModel):
    rule_id: int
    rule_name: str
    project_id: int | None = None
    usages: list[UsageResponse] = Field(default_factory=list)


class AttributeImpact(CamelModel):
    """Which rules use an attribute and how risky changing it is."""

    attribute_name: str
    schema_name: str
    schema_id: int
    affected_rules: list[AffectedRule] = Field(default_factory=list)
    total_affected_rules: int = 0
    risk_level: Literal["none", "low", "medium", "high"] = "none"


class ApplyAttributeChangeRequest(CamelModel):
    change_type: Literal["rename", "retype", "delete"]
    old_name: str | None = None
    new_name: str | None = None
    new_type: str | None = None
    confirm_propagation: bool = False


class ApplyAttributeChangeResponse(CamelModel):
    success: bool
    message: str
    updated_rule_ids: list[int] = Field(default_factory=list)
    failed_rule_ids: list[int] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
