"""Impact analysis and propagation of attribute changes into rules."""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError as PydanticValidationError
from sqlmodel import Session

from ruleengine.core.errors import RuleEngineError, ValidationError
from ruleengine.core.tenancy import DEFAULT_TENANT
from ruleengine.rules.models import RuleDefinition
from ruleengine.rules.service import apply_definition
from ruleengine.rules.validation import validate_rule
from ruleengine.runtime.cache import get_rule_cache
from ruleengine.schema_registry import attributes
from ruleengine.schema_registry.model import SchemaModel
from ruleengine.schema_registry.service import schema_document
from ruleengine.storage.models import RuleRecord, SchemaRecord, utc_now
from ruleengine.storage.repository import get_schema_or_404, list_rules
from .analyzer import find_usages, risk_level
from .rewriter import delete_in_rule, rename_in_rule, uses_attribute
from .schemas import (
    AffectedRule,
    ApplyAttributeChangeRequest,
    ApplyAttributeChangeResponse,
    AttributeImpact,
    UsageResponse,
)

logger = logging.getLogger(__name__)


class ImpactService:
    """Analyze and propagate attribute changes across the rules of a schema."""

    def __init__(self, session: Session, tenant_id: str = DEFAULT_TENANT):
        self.session = session
        self.tenant_id = tenant_id

    def analyze(self, schema_id: int, attribute: str) -> AttributeImpact:
        schema = get_schema_or_404(self.session, schema_id)
        affected = []
        for record in list_rules(self.session, schema_id):
            usages = find_usages(RuleDefinition.from_json(record.rule_json), attribute, schema.name)
            if usages:
                affected.append(
                    AffectedRule(
                        rule_id=record.id,
                        rule_name=record.name,
                        project_id=record.project_id,
                        usages=[UsageResponse(location=u.location, detail=u.detail) for u in usages],
                    )
                )
        return AttributeImpact(
            attribute_name=attribute,
            schema_name=schema.name,
            schema_id=schema.id,
            affected_rules=affected,
            total_affected_rules=len(affected),
            risk_level=risk_level(len(affected)),
        )

    def apply_change(
        self, schema_id: int, attribute: str, request: ApplyAttributeChangeRequest
    ) -> ApplyAttributeChangeResponse:
        """Change the schema and rewrite every affected rule in one transaction.

        Rules that fail re-validation keep their previous definition and are
        reported; the schema change and the other rules still commit.
        """
        schema = get_schema_or_404(self.session, schema_id)
        if not request.confirm_propagation:
            raise ValidationError("Propagation not confirmed", field="confirmPropagation")
        old_name = request.old_name or attribute
        if request.change_type == "rename":
            if not request.new_name:
                raise ValidationError("newName is required for a rename", field="newName")
            # Schema and rules must agree on the full renamed path
            request = request.model_copy(update={"new_name": attributes.sibling_path(old_name, request.new_name)})
        if request.change_type == "retype" and not request.new_type:
            raise ValidationError("newType is required for a retype", field="newType")

        try:
            model = self._change_schema(schema, request, old_name)
            updated: list[int] = []
            failed: list[int] = []
            errors: list[str] = []
            for record in list_rules(self.session, schema_id):
                try:
                    if self._rewrite_rule(record, schema, model, request, old_name):
                        updated.append(record.id)
                except (RuleEngineError, PydanticValidationError, ValueError) as exc:
                    logger.error("Failed to update rule %s: %s", record.id, exc)
                    failed.append(record.id)
                    errors.append(f"Rule {record.id} ({record.name}): {exc}")
            self.session.commit()
        finally:
            get_rule_cache().invalidate(self.tenant_id, schema_id)

        logger.info(
            "Applied %s of '%s' on schema %s: %d updated, %d failed",
            request.change_type, old_name, schema_id, len(updated), len(failed),
        )
        if failed:
            return ApplyAttributeChangeResponse(
                success=False,
                message=f"Partially completed: {len(updated)} updated, {len(failed)} failed",
                updated_rule_ids=updated,
                failed_rule_ids=failed,
                errors=errors,
            )
        message = f"Successfully updated {len(updated)} rule(s)" if updated else "No rules required updates"
        return ApplyAttributeChangeResponse(success=True, message=message, updated_rule_ids=updated)

    def _change_schema(
        self, schema: SchemaRecord, request: ApplyAttributeChangeRequest, old_name: str
    ) -> SchemaModel:
        doc = schema_document(schema)
        original = json.dumps(doc)
        if request.change_type == "rename":
            found = attributes.rename_attribute(doc, old_name, request.new_name)
        elif request.change_type == "delete":
            found = attributes.remove_attribute(doc, old_name)
        else:
            found = attributes.retype_attribute(doc, old_name, request.new_type)
        if found and json.dumps(doc) != original:
            schema.json_schema = json.dumps(doc)
            schema.updated_at = utc_now()
            self.session.add(schema)
        elif not found:
            logger.warning("Attribute '%s' not in schema %s; rewriting rules only", old_name, schema.id)
        return SchemaModel.from_json_schema(schema.name, doc)

    def _rewrite_rule(
        self,
        record: RuleRecord,
        schema: SchemaRecord,
        model: SchemaModel,
        request: ApplyAttributeChangeRequest,
        old_name: str,
    ) -> bool:
        definition = RuleDefinition.from_json(record.rule_json)
        if request.change_type == "rename":
            rewritten, changed = rename_in_rule(definition, old_name, request.new_name, schema.name)
        elif request.change_type == "delete":
            rewritten, changed = delete_in_rule(definition, old_name, schema.name)
        else:
            rewritten, changed = definition, uses_attribute(definition, old_name, schema.name)
        if not changed:
            return False
        validate_rule(rewritten, model)
        apply_definition(record, rewritten, schema.name)
        self.session.add(record)
        return True
