"""Query helpers shared by the schema, rule and impact services."""

from __future__ import annotations

from typing import Iterable

from sqlmodel import Session, select

from ruleengine.core.errors import NotFoundError
from .models import RuleRecord, SchemaRecord


def get_schema_or_404(session: Session, schema_id: int) -> SchemaRecord:
    schema = session.get(SchemaRecord, schema_id)
    if schema is None:
        raise NotFoundError(f"Schema {schema_id} not found")
    return schema


def get_rule_or_404(session: Session, rule_id: int) -> RuleRecord:
    rule = session.get(RuleRecord, rule_id)
    if rule is None:
        raise NotFoundError(f"Rule {rule_id} not found")
    return rule


def list_schemas(session: Session) -> list[SchemaRecord]:
    return list(session.exec(select(SchemaRecord).order_by(SchemaRecord.id)).all())


def list_rules(session: Session, schema_id: int | None = None) -> list[RuleRecord]:
    statement = select(RuleRecord)
    if schema_id is not None:
        statement = statement.where(RuleRecord.schema_id == schema_id)
    return list(session.exec(statement.order_by(RuleRecord.id)).all())


def rules_by_ids(session: Session, rule_ids: Iterable[int]) -> list[RuleRecord]:
    """Fetch rules by id; ids that do not exist are skipped."""
    ids = list(dict.fromkeys(rule_ids))
    if not ids:
        return []
    statement = select(RuleRecord).where(RuleRecord.id.in_(ids)).order_by(RuleRecord.id)
    return list(session.exec(statement).all())


def count_rules_for_schema(session: Session, schema_id: int) -> int:
    return len(session.exec(select(RuleRecord.id).where(RuleRecord.schema_id == schema_id)).all())
