"""Pydantic models for schema API requests and responses."""

from datetime import datetime
from typing import Any

from pydantic import Field

from ruleengine.core.models import CamelModel
from ruleengine.storage.models import SchemaSource
from .model import PropertyNode


# =============================================================================
# Schema Models
# =============================================================================


class SchemaRead(CamelModel):
    """A stored schema with its derived property tree."""

    id: int
    name: str
    description: str | None = None
    group: str | None = None
    project_id: int | None = None
    version: str
    source: SchemaSource
    json_schema: dict[str, Any]
    properties: list[PropertyNode] = Field(default_factory=list)
    rule_count: int = 0
    created_at: datetime
    updated_at: datetime


class SchemaUpdate(CamelModel):
    """Partial update of schema metadata or document."""

    name: str | None = Field(None, min_length=1)
    description: str | None = None
    group: str | None = None
    project_id: int | None = None
    json_schema: dict[str, Any] | None = None


class SchemaScope(CamelModel):
    """Fields shared by every create/import request."""

    description: str | None = None
    group: str | None = None
    project_id: int | None = None


class ManualSchemaRequest(SchemaScope):
    name: str = Field(..., min_length=1)
    property_tree: PropertyNode = Field(..., alias="schema")


# =============================================================================
# Import Models
# =============================================================================


class OpenApiPreviewRequest(CamelModel):
    content: str


class OpenApiPreviewResponse(CamelModel):
    entities: list[str]


class OpenApiImportRequest(SchemaScope):
    name: str = Field(..., min_length=1)
    content: str
    selected_entities: list[str] = Field(default_factory=list)


class JsonSchemaImportRequest(SchemaScope):
    name: str | None = None
    content: str | dict[str, Any]


class ExampleImportRequest(SchemaScope):
    name: str = Field(..., min_length=1)
    example: Any


# =============================================================================
# Attribute Models
# =============================================================================


class AttributeList(CamelModel):
    schema_id: int
    schema_name: str
    attributes: list[PropertyNode]
