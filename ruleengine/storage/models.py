"""SQLModel table definitions for schemas, rules and execution records.

Rule definitions and schema documents are stored as JSON text; the typed
views live in ``ruleengine.rules.models`` and ``ruleengine.schema_registry``.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SchemaSource(str, Enum):
    """Where a schema came from."""
    SWAGGER = "SWAGGER"
    JSON_SCHEMA = "JSON_SCHEMA"
    MANUAL = "MANUAL"


class SchemaRecord(SQLModel, table=True):
    """A named object schema stored as a canonical JSON Schema document."""

    __tablename__ = "schemas"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(..., index=True)
    description: Optional[str] = Field(default=None)
    group_name: Optional[str] = Field(default=None, description="UI grouping label")
    project_id: Optional[int] = Field(default=None, index=True)
    version: str = Field(default="1.0")
    source: SchemaSource = Field(default=SchemaSource.MANUAL)

    json_schema: str = Field(..., description="Canonical JSON Schema document")
    original_content: Optional[str] = Field(default=None, description="Imported source text")

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class RuleRecord(SQLModel, table=True):
    """A rule bound to one schema; ``rule_json`` is the source of truth."""

    __tablename__ = "rules"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(..., index=True)
    description: Optional[str] = Field(default=None)
    schema_id: int = Field(..., foreign_key="schemas.id", index=True)
    project_id: Optional[int] = Field(default=None, index=True)

    rule_json: str = Field(..., description="RuleDefinition serialized as JSON")
    compiled_text: Optional[str] = Field(default=None, description="Readable rendering for debugging")

    # Denormalized from rule_json for listing and filtering
    enabled: bool = Field(default=True)
    priority: int = Field(default=0)
    category: Optional[str] = Field(default=None)
    activation_group: Optional[str] = Field(default=None)
    lock_on_active: bool = Field(default=False)
    date_effective: Optional[str] = Field(default=None)
    date_expires: Optional[str] = Field(default=None)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class RuleAuditLog(SQLModel, table=True):
    """One fired rule within a live execution."""

    __tablename__ = "rule_audit_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    rule_id: int = Field(..., index=True)
    rule_name: str
    input_facts: str = Field(..., description="JSON array")
    output_facts: str = Field(..., description="JSON array")
    fire_count: int = Field(default=1)
    execution_time_ms: int = Field(default=0)
    created_at: datetime = Field(default_factory=utc_now)


class ExecutionHistory(SQLModel, table=True):
    """One live execution request."""

    __tablename__ = "execution_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    schema_id: Optional[int] = Field(default=None, index=True)
    rule_ids: str = Field(..., description="JSON array of executed rule ids")
    input_facts: str
    output_facts: str
    fired_rules: str = Field(..., description="JSON array of {ruleId, ruleName, fireCount}")
    success: bool
    error_message: Optional[str] = Field(default=None)
    execution_time_ms: int = Field(default=0)
    created_at: datetime = Field(default_factory=utc_now)
