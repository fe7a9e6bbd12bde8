"""Schema registry domain - property trees, importers and schema storage."""

from .importer import (
    RefResolver,
    extract_openapi_entities,
    infer_schema,
    load_document,
    parse_openapi,
    resolve_json_schema,
    sanitize_name,
)
from .model import (
    PropertyNode,
    SchemaModel,
    TypeInfo,
    json_schema_from_property_tree,
    property_tree_from_json_schema,
    value_matches_type,
)
from .preview import filter_entities, is_importable_entity, preview_entities

__all__ = [
    # Model
    "PropertyNode",
    "SchemaModel",
    "TypeInfo",
    "property_tree_from_json_schema",
    "json_schema_from_property_tree",
    "value_matches_type",
    # Import
    "RefResolver",
    "load_document",
    "extract_openapi_entities",
    "parse_openapi",
    "resolve_json_schema",
    "infer_schema",
    "sanitize_name",
    # Preview
    "is_importable_entity",
    "filter_entities",
    "preview_entities",
]
