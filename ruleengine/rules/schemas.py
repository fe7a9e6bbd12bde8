"""Pydantic models for rules API requests and responses."""

from datetime import datetime
from typing import Any

from pydantic import Field

from ruleengine.core.models import CamelModel
from .models import RuleDefinition


# =============================================================================
# Rule Models
# =============================================================================


class RuleRead(CamelModel):
    """A stored rule with its embedded definition."""

    id: int
    name: str
    description: str | None = None
    schema_id: int
    schema_name: str
    project_id: int | None = None
    priority: int
    enabled: bool
    category: str | None = None
    activation_group: str | None = None
    lock_on_active: bool = False
    date_effective: str | None = None
    date_expires: str | None = None
    definition: RuleDefinition
    generated_drl: str | None = None
    created_at: datetime
    updated_at: datetime


class MatchPayloadResponse(CamelModel):
    rule_id: int
    schema_name: str
    payload: dict[str, Any]


# =============================================================================
# Execution Models
# =============================================================================


class ExecuteRulesRequest(CamelModel):
    """Execute either the given rules or every active rule of a schema."""

    schema_id: int | None = None
    rule_ids: list[int] = Field(default_factory=list)
    facts: list[Any] = Field(default_factory=list)
    dry_run: bool = False
    timeout_ms: int | None = Field(None, gt=0, description="Per-execution deadline override")


class FiredRuleResponse(CamelModel):
    rule_id: int
    rule_name: str
    fire_count: int


class WebhookResultResponse(CamelModel):
    url: str
    status_code: int
    response: str | None = None
    success: bool


class AuditLogResponse(CamelModel):
    rule_name: str
    fact_type: str
    message: str


class RuleErrorResponse(CamelModel):
    rule_id: int
    rule_name: str
    message: str


class ExecuteRulesResponse(CamelModel):
    success: bool
    result_facts: list[dict[str, Any]] = Field(default_factory=list)
    fired_rules: list[FiredRuleResponse] = Field(default_factory=list)
    webhook_results: list[WebhookResultResponse] = Field(default_factory=list)
    audit_logs: list[AuditLogResponse] = Field(default_factory=list)
    rule_errors: list[RuleErrorResponse] = Field(default_factory=list)
    total_firings: int = 0
    firing_cap_reached: bool = False
    execution_time_ms: int = 0
    error_message: str | None = None
