"""Business logic for rule CRUD and execution."""

from __future__ import annotations

import json
import logging
import time

from pydantic import ValidationError as PydanticValidationError
from sqlmodel import Session

from ruleengine.core.config import Settings, get_settings
from ruleengine.core.errors import NotFoundError, ValidationError
from ruleengine.core.tenancy import DEFAULT_TENANT
from ruleengine.runtime.actions import ActionExecutor
from ruleengine.runtime.cache import get_rule_cache
from ruleengine.runtime.engine import CompiledRule, ExecutionResult, RuleEngine, RuleError
from ruleengine.schema_registry.service import schema_model
from ruleengine.storage.models import ExecutionHistory, RuleAuditLog, RuleRecord, SchemaRecord, utc_now
from ruleengine.storage.repository import get_rule_or_404, get_schema_or_404, list_rules, rules_by_ids
from .match_payload import generate_match_payload
from .models import RuleDefinition
from .render import render_rule
from .schemas import ExecuteRulesRequest, ExecuteRulesResponse, MatchPayloadResponse, RuleRead
from .validation import validate_rule

logger = logging.getLogger(__name__)

CompiledEntry = CompiledRule | RuleError


def apply_definition(record: RuleRecord, definition: RuleDefinition, schema_name: str) -> None:
    """Copy a definition onto its record, regenerating the rendered text."""
    record.name = definition.name
    record.description = definition.description
    record.schema_id = definition.schema_id
    record.project_id = definition.project_id
    record.priority = definition.priority
    record.enabled = definition.enabled
    record.category = definition.category
    record.activation_group = definition.activation_group
    record.lock_on_active = definition.lock_on_active
    record.date_effective = definition.date_effective
    record.date_expires = definition.date_expires
    record.rule_json = definition.to_json()
    record.compiled_text = render_rule(definition, schema_name)
    record.updated_at = utc_now()


def compile_record(record: RuleRecord, schema_name: str) -> CompiledEntry:
    """Compile a stored rule; a definition that no longer parses becomes a RuleError."""
    try:
        definition = RuleDefinition.from_json(record.rule_json)
        return CompiledRule.from_definition(record.id, definition, schema_name)
    except (PydanticValidationError, ValueError) as exc:
        logger.error("Rule %s (%s) could not be loaded: %s", record.id, record.name, exc)
        return RuleError(record.id, record.name, f"definition could not be loaded: {exc}")


class RuleService:
    """Service for rule CRUD and execution."""

    def __init__(self, session: Session, tenant_id: str = DEFAULT_TENANT, settings: Settings | None = None):
        self.session = session
        self.tenant_id = tenant_id
        self.settings = settings or get_settings()

    # =========================================================================
    # Queries
    # =========================================================================

    def list_rules(self, schema_id: int | None = None) -> list[RuleRecord]:
        return list_rules(self.session, schema_id)

    def get_rule(self, rule_id: int) -> RuleRecord:
        return get_rule_or_404(self.session, rule_id)

    def get_definition(self, record: RuleRecord) -> RuleDefinition:
        return RuleDefinition.from_json(record.rule_json)

    def to_read(self, record: RuleRecord) -> RuleRead:
        schema = self.session.get(SchemaRecord, record.schema_id)
        return RuleRead(
            id=record.id,
            name=record.name,
            description=record.description,
            schema_id=record.schema_id,
            schema_name=schema.name if schema else "",
            project_id=record.project_id,
            priority=record.priority,
            enabled=record.enabled,
            category=record.category,
            activation_group=record.activation_group,
            lock_on_active=record.lock_on_active,
            date_effective=record.date_effective,
            date_expires=record.date_expires,
            definition=self.get_definition(record),
            generated_drl=record.compiled_text,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    # =========================================================================
    # CRUD
    # =========================================================================

    def create_rule(self, definition: RuleDefinition) -> RuleRecord:
        schema = get_schema_or_404(self.session, definition.schema_id)
        validate_rule(definition, schema_model(schema))

        record = RuleRecord(name=definition.name, schema_id=schema.id, rule_json="{}")
        apply_definition(record, definition, schema.name)
        self._commit(record)
        logger.info("Created rule %s '%s' on schema %s", record.id, record.name, schema.id)
        return record

    def update_rule(self, rule_id: int, definition: RuleDefinition) -> RuleRecord:
        record = self.get_rule(rule_id)
        previous_schema_id = record.schema_id
        schema = get_schema_or_404(self.session, definition.schema_id)
        validate_rule(definition, schema_model(schema))

        apply_definition(record, definition, schema.name)
        self._commit(record)
        if previous_schema_id != schema.id:
            get_rule_cache().invalidate(self.tenant_id, previous_schema_id)
        logger.info("Updated rule %s '%s'", record.id, record.name)
        return record

    def delete_rule(self, rule_id: int) -> None:
        record = self.get_rule(rule_id)
        schema_id = record.schema_id
        self.session.delete(record)
        self.session.commit()
        get_rule_cache().invalidate(self.tenant_id, schema_id)
        logger.info("Deleted rule %s", rule_id)

    def toggle_rule(self, rule_id: int) -> RuleRecord:
        record = self.get_rule(rule_id)
        definition = self.get_definition(record)
        definition.enabled = not record.enabled
        apply_definition(record, definition, self._schema_name(record.schema_id))
        self._commit(record)
        return record

    def regenerate(self, rule_id: int) -> RuleRecord:
        """Re-render the stored text form from the definition."""
        record = self.get_rule(rule_id)
        record.compiled_text = render_rule(self.get_definition(record), self._schema_name(record.schema_id))
        record.updated_at = utc_now()
        self._commit(record)
        return record

    def render(self, rule_id: int) -> str:
        record = self.get_rule(rule_id)
        if record.compiled_text:
            return record.compiled_text
        return render_rule(self.get_definition(record), self._schema_name(record.schema_id))

    def match_payload(self, rule_id: int) -> MatchPayloadResponse:
        record = self.get_rule(rule_id)
        schema = get_schema_or_404(self.session, record.schema_id)
        payload = generate_match_payload(self.get_definition(record), schema_model(schema))
        return MatchPayloadResponse(rule_id=record.id, schema_name=schema.name, payload=payload)

    def _schema_name(self, schema_id: int) -> str:
        return get_schema_or_404(self.session, schema_id).name

    def _commit(self, record: RuleRecord) -> None:
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        get_rule_cache().invalidate(self.tenant_id, record.schema_id)

    # =========================================================================
    # Execution
    # =========================================================================

    def _load_schema_rules(self, schema_id: int) -> tuple[CompiledEntry, ...]:
        schema_name = self._schema_name(schema_id)
        return tuple(compile_record(record, schema_name) for record in list_rules(self.session, schema_id))

    def _select(self, request: ExecuteRulesRequest) -> tuple[SchemaRecord, list[CompiledEntry]]:
        if request.rule_ids:
            records = rules_by_ids(self.session, request.rule_ids)
            missing = sorted(set(request.rule_ids) - {record.id for record in records})
            if missing:
                raise NotFoundError(f"Rules not found: {missing}")
            names = {}
            for record in records:
                if record.schema_id not in names:
                    names[record.schema_id] = self._schema_name(record.schema_id)
            entries = [compile_record(record, names[record.schema_id]) for record in records]
            schema = get_schema_or_404(self.session, request.schema_id or records[0].schema_id)
            return schema, entries

        if request.schema_id is None:
            raise ValidationError("Either schemaId or ruleIds is required", field="schemaId")
        schema = get_schema_or_404(self.session, request.schema_id)
        entries = get_rule_cache().get_or_load(self.tenant_id, schema.id, self._load_schema_rules)
        return schema, list(entries)

    def execute(self, request: ExecuteRulesRequest) -> ExecuteRulesResponse:
        schema, entries = self._select(request)
        compiled = [entry for entry in entries if isinstance(entry, CompiledRule)]
        load_errors = [entry for entry in entries if isinstance(entry, RuleError)]

        timeout = request.timeout_ms / 1000 if request.timeout_ms else self.settings.execution_deadline_seconds
        engine = RuleEngine(
            max_firings=self.settings.max_rule_firings,
            executor=ActionExecutor(webhook_timeout=self.settings.webhook_timeout_seconds),
        )
        result = engine.execute(
            compiled,
            request.facts,
            schema.name,
            dry_run=request.dry_run,
            schema=schema_model(schema),
            deadline=time.monotonic() + timeout,
            load_errors=load_errors,
        )

        if not request.dry_run:
            self._record_execution(request, schema, entries, result)
        return ExecuteRulesResponse.model_validate(result.to_dict())

    def _record_execution(
        self,
        request: ExecuteRulesRequest,
        schema: SchemaRecord,
        entries: list[CompiledEntry],
        result: ExecutionResult,
    ) -> None:
        input_json = json.dumps(request.facts)
        output_json = json.dumps(result.result_facts)
        self.session.add(
            ExecutionHistory(
                schema_id=schema.id,
                rule_ids=json.dumps([entry.rule_id for entry in entries]),
                input_facts=input_json,
                output_facts=output_json,
                fired_rules=json.dumps([fired.to_dict() for fired in result.fired_rules]),
                success=result.success,
                error_message=result.error_message,
                execution_time_ms=result.execution_time_ms,
            )
        )
        if result.success:
            for fired in result.fired_rules:
                self.session.add(
                    RuleAuditLog(
                        rule_id=fired.rule_id,
                        rule_name=fired.rule_name,
                        input_facts=input_json,
                        output_facts=output_json,
                        fire_count=fired.fire_count,
                        execution_time_ms=result.execution_time_ms,
                    )
                )
        self.session.commit()
