"""Business logic for schema storage, import and attribute edits."""

from __future__ import annotations

import json
import logging
from typing import Any

from sqlmodel import Session

from ruleengine.core.config import Settings, get_settings
from ruleengine.core.errors import ConflictError, ValidationError
from ruleengine.core.tenancy import DEFAULT_TENANT
from ruleengine.runtime.cache import get_rule_cache
from ruleengine.storage.models import SchemaRecord, SchemaSource, utc_now
from ruleengine.storage.repository import count_rules_for_schema, get_schema_or_404, list_schemas
from . import attributes
from .importer import extract_openapi_entities, infer_schema, load_document, resolve_json_schema
from .model import (
    PropertyNode,
    SchemaModel,
    json_schema_document,
    json_schema_from_property_tree,
    property_tree_from_json_schema,
)
from .preview import filter_entities, preview_entities
from .schemas import (
    ExampleImportRequest,
    JsonSchemaImportRequest,
    ManualSchemaRequest,
    OpenApiImportRequest,
    SchemaRead,
    SchemaScope,
    SchemaUpdate,
)

logger = logging.getLogger(__name__)


def schema_document(record: SchemaRecord) -> dict[str, Any]:
    return json.loads(record.json_schema)


def schema_model(record: SchemaRecord) -> SchemaModel:
    return SchemaModel.from_json_schema(record.name, schema_document(record))


class SchemaService:
    """Service for schema CRUD, import and attribute operations."""

    def __init__(self, session: Session, tenant_id: str = DEFAULT_TENANT, settings: Settings | None = None):
        self.session = session
        self.tenant_id = tenant_id
        self.settings = settings or get_settings()

    # =========================================================================
    # Queries
    # =========================================================================

    def list_schemas(self) -> list[SchemaRecord]:
        return list_schemas(self.session)

    def get_schema(self, schema_id: int) -> SchemaRecord:
        return get_schema_or_404(self.session, schema_id)

    def to_read(self, record: SchemaRecord) -> SchemaRead:
        doc = schema_document(record)
        tree = property_tree_from_json_schema(doc, record.name)
        return SchemaRead(
            id=record.id,
            name=record.name,
            description=record.description,
            group=record.group_name,
            project_id=record.project_id,
            version=record.version,
            source=record.source,
            json_schema=doc,
            properties=tree.properties or [],
            rule_count=count_rules_for_schema(self.session, record.id),
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    # =========================================================================
    # Creation and import
    # =========================================================================

    def create_manual(self, request: ManualSchemaRequest) -> SchemaRecord:
        tree = request.property_tree
        if tree.type != "object":
            raise ValidationError("A schema root must be an object", field="schema.type")
        body = json_schema_from_property_tree(tree)
        return self._save(request.name, body, SchemaSource.MANUAL, request, original=None)

    def preview_openapi(self, content: str) -> list[str]:
        return preview_entities(content, self.settings.fetch_timeout_seconds)

    def import_openapi(self, request: OpenApiImportRequest) -> list[SchemaRecord]:
        """Import OpenAPI entities.

        Selected entities become one schema each. Without a selection a
        single entity is stored under the request name, and several are
        wrapped as properties of one root object named after the request.
        """
        document = load_document(request.content, self.settings.fetch_timeout_seconds)
        entities = extract_openapi_entities(document)
        if not entities:
            raise ValidationError("No schemas found in OpenAPI content", field="content")

        if request.selected_entities:
            missing = [name for name in request.selected_entities if name not in entities]
            if missing:
                raise ValidationError(f"Entities not found: {', '.join(missing)}", field="selectedEntities")
            return [
                self._save(name, entities[name], SchemaSource.SWAGGER, request, request.content)
                for name in request.selected_entities
            ]

        if len(entities) == 1:
            only = next(iter(entities.values()))
            return [self._save(request.name, only, SchemaSource.SWAGGER, request, request.content)]

        names = filter_entities(list(entities)) or list(entities)
        wrapper = {"type": "object", "properties": {name: entities[name] for name in names}}
        return [self._save(request.name, wrapper, SchemaSource.SWAGGER, request, request.content)]

    def import_json_schema(self, request: JsonSchemaImportRequest) -> SchemaRecord:
        if isinstance(request.content, dict):
            document, original = request.content, json.dumps(request.content)
        else:
            document = load_document(request.content, self.settings.fetch_timeout_seconds)
            original = request.content
        body = resolve_json_schema(document)
        name = request.name or (document.get("title") if isinstance(document, dict) else None)
        if not name:
            raise ValidationError("Schema name is required", field="name")
        return self._save(name, body, SchemaSource.JSON_SCHEMA, request, original)

    def import_example(self, request: ExampleImportRequest) -> SchemaRecord:
        example = request.example
        original = example if isinstance(example, str) else json.dumps(example)
        if isinstance(example, str):
            example = load_document(example, self.settings.fetch_timeout_seconds)
        if not isinstance(example, dict):
            raise ValidationError("Example must be a JSON object", field="example")
        body = infer_schema(example)
        return self._save(request.name, body, SchemaSource.JSON_SCHEMA, request, original)

    def _save(
        self,
        name: str,
        body: dict[str, Any],
        source: SchemaSource,
        scope: SchemaScope,
        original: str | None,
    ) -> SchemaRecord:
        record = SchemaRecord(
            name=name,
            description=scope.description,
            group_name=scope.group,
            project_id=scope.project_id,
            source=source,
            json_schema=json.dumps(json_schema_document(name, body)),
            original_content=original,
        )
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        logger.info("Stored %s schema '%s' (id=%s)", source.value, name, record.id)
        return record

    # =========================================================================
    # Update and delete
    # =========================================================================

    def update_schema(self, schema_id: int, request: SchemaUpdate) -> SchemaRecord:
        record = self.get_schema(schema_id)
        changes = request.model_dump(exclude_unset=True)
        if "name" in changes and changes["name"]:
            record.name = changes["name"]
        if "description" in changes:
            record.description = changes["description"]
        if "group" in changes:
            record.group_name = changes["group"]
        if "project_id" in changes:
            record.project_id = changes["project_id"]
        doc = changes.get("json_schema") or schema_document(record)
        record.json_schema = json.dumps(json_schema_document(record.name, doc))
        self._touch(record)
        return record

    def delete_schema(self, schema_id: int) -> None:
        record = self.get_schema(schema_id)
        if count_rules_for_schema(self.session, schema_id):
            raise ConflictError("Cannot delete schema with existing rules. Delete the rules first.")
        self.session.delete(record)
        self.session.commit()
        get_rule_cache().invalidate(self.tenant_id, schema_id)
        logger.info("Deleted schema %s", schema_id)

    # =========================================================================
    # Attributes (schema only, no rule propagation)
    # =========================================================================

    def list_attributes(self, schema_id: int) -> list[PropertyNode]:
        return attributes.list_attributes(schema_document(self.get_schema(schema_id)))

    def add_attribute(self, schema_id: int, node: PropertyNode) -> PropertyNode:
        record = self.get_schema(schema_id)
        doc = schema_document(record)
        attributes.add_attribute(doc, node)
        record.json_schema = json.dumps(doc)
        self._touch(record)
        return self._attribute(doc, node.name)

    def update_attribute(self, schema_id: int, name: str, node: PropertyNode) -> PropertyNode:
        record = self.get_schema(schema_id)
        doc = schema_document(record)
        attributes.update_attribute(doc, name, node)
        record.json_schema = json.dumps(doc)
        self._touch(record)
        return self._attribute(doc, node.name or name)

    def delete_attribute(self, schema_id: int, name: str) -> None:
        record = self.get_schema(schema_id)
        doc = schema_document(record)
        attributes.delete_attribute(doc, name)
        record.json_schema = json.dumps(doc)
        self._touch(record)

    def _attribute(self, doc: dict[str, Any], name: str) -> PropertyNode:
        model = SchemaModel.from_json_schema("", doc)
        node = model.resolve(name)
        return node if node is not None else PropertyNode(name=name, path=name)

    def _touch(self, record: SchemaRecord) -> None:
        record.updated_at = utc_now()
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        get_rule_cache().invalidate(self.tenant_id, record.id)
