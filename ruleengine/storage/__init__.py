"""Storage domain - SQLModel tables and query helpers."""

from .models import (
    ExecutionHistory,
    RuleAuditLog,
    RuleRecord,
    SchemaRecord,
    SchemaSource,
    utc_now,
)
from .repository import (
    count_rules_for_schema,
    get_rule_or_404,
    get_schema_or_404,
    list_rules,
    list_schemas,
    rules_by_ids,
)

__all__ = [
    # Tables
    "SchemaRecord",
    "SchemaSource",
    "RuleRecord",
    "RuleAuditLog",
    "ExecutionHistory",
    "utc_now",
    # Queries
    "get_schema_or_404",
    "get_rule_or_404",
    "list_schemas",
    "list_rules",
    "rules_by_ids",
    "count_rules_for_schema",
]
