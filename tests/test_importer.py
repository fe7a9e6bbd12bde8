"""Tests for OpenAPI, JSON Schema and example importers."""

import json

import pytest

from ruleengine.core.errors import ValidationError
from ruleengine.schema_registry.importer import (
    RefResolver,
    extract_openapi_entities,
    infer_schema,
    load_document,
    resolve_json_schema,
    sanitize_name,
)
from ruleengine.schema_registry.model import CIRCULAR_MARKER

OPENAPI_V3 = {
    "openapi": "3.0.0",
    "info": {"title": "Shop", "version": "1"},
    "paths": {
        "/orders/{id}": {
            "get": {
                "responses": {
                    "200": {
                        "description": "ok",
                        "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Order"}}},
                    }
                }
            },
            "post": {
                "requestBody": {
                    "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Order"}}}
                },
                "responses": {"201": {"description": "created"}},
            },
        }
    },
    "components": {
        "schemas": {
            "Order": {
                "type": "object",
                "properties": {
                    "id": {"type": "integer"},
                    "customer": {"$ref": "#/components/schemas/Customer"},
                },
            },
            "Customer": {"type": "object", "properties": {"name": {"type": "string"}}},
            "Node": {
                "type": "object",
                "properties": {"value": {"type": "string"}, "next": {"$ref": "#/components/schemas/Node"}},
            },
        }
    },
}

SWAGGER_V2 = """
swagger: "2.0"
info:
  title: Legacy
  version: "1"
paths:
  /pets:
    post:
      parameters:
        - in: body
          name: pet
          schema:
            $ref: "#/definitions/Pet"
      responses:
        "200":
          description: ok
          schema:
            $ref: "#/definitions/Pet"
definitions:
  Pet:
    type: object
    properties:
      name:
        type: string
"""


class TestSanitize:
    def test_sanitize_name(self):
        """Test path-like names become identifiers."""
        assert sanitize_name("/orders/{id}") == "orders_id"
        assert sanitize_name("__a--b__") == "a_b"


class TestLoadDocument:
    def test_json(self):
        """Test loading JSON text."""
        assert load_document('{"a": 1}') == {"a": 1}

    def test_yaml(self):
        """Test loading YAML text."""
        assert load_document("a: 1\nb: [x, y]") == {"a": 1, "b": ["x", "y"]}

    def test_empty_content(self):
        """Test loading blank content."""
        with pytest.raises(ValidationError):
            load_document("   ")

    def test_unreachable_url(self):
        """A URL that cannot be fetched is a validation error on content."""
        with pytest.raises(ValidationError) as exc_info:
            load_document("http://127.0.0.1:9/openapi.json", fetch_timeout=1)
        assert exc_info.value.field == "content"


class TestRefResolver:
    def test_inlines_nested_refs(self):
        """Test references are inlined recursively."""
        resolver = RefResolver(OPENAPI_V3)
        order = resolver.inline({"$ref": "#/components/schemas/Order"})
        assert order["properties"]["customer"]["properties"]["name"] == {"type": "string"}

    def test_cuts_cycles(self):
        """Test a self-reference is replaced by a placeholder."""
        resolver = RefResolver(OPENAPI_V3)
        node = resolver.inline({"$ref": "#/components/schemas/Node"})
        placeholder = node["properties"]["next"]
        assert placeholder[CIRCULAR_MARKER] == "Node"
        assert placeholder["description"] == "circular reference to Node"

    def test_unresolvable_ref(self):
        """Unresolvable references become plain objects."""
        resolver = RefResolver({})
        assert resolver.inline({"$ref": "#/missing"})["type"] == "object"


class TestOpenApiEntities:
    def test_v3_named_and_synthetic(self):
        """Test OpenAPI 3 component and operation entities."""
        entities = extract_openapi_entities(OPENAPI_V3)
        assert {"Order", "Customer", "Node"} <= set(entities)
        assert "GET_orders_id_200" in entities
        assert "Request_orders_id" in entities
        assert entities["GET_orders_id_200"]["properties"]["id"] == {"type": "integer"}

    def test_v3_named_schema_self_reference(self):
        """Test circular components are marked."""
        entities = extract_openapi_entities(OPENAPI_V3)
        assert entities["Node"]["properties"]["next"][CIRCULAR_MARKER] == "Node"

    def test_v2_yaml(self):
        """Test a Swagger 2 YAML document."""
        entities = extract_openapi_entities(load_document(SWAGGER_V2))
        assert set(entities) == {"Pet", "Request_pets", "POST_pets_200"}

    def test_not_openapi(self):
        """Documents without OpenAPI markers have no entities."""
        assert extract_openapi_entities({"type": "object"}) == {}

    def test_not_an_object(self):
        """Test a document that is not an object."""
        with pytest.raises(ValidationError):
            extract_openapi_entities(["a"])


class TestJsonSchema:
    def test_definitions_are_inlined_and_dropped(self):
        """Test local definitions are inlined and removed."""
        document = {
            "title": "Invoice",
            "type": "object",
            "properties": {"line": {"$ref": "#/definitions/Line"}},
            "definitions": {"Line": {"type": "object", "properties": {"amount": {"type": "number"}}}},
        }
        body = resolve_json_schema(document)
        assert "definitions" not in body
        assert body["properties"]["line"]["properties"]["amount"] == {"type": "number"}

    def test_root_self_reference(self):
        """Test a reference back to the document root."""
        body = resolve_json_schema({"type": "object", "properties": {"child": {"$ref": "#"}}})
        assert body["properties"]["child"][CIRCULAR_MARKER] == "root"


class TestInferSchema:
    def test_infers_leaf_types(self):
        """Test type inference for scalar and list values."""
        schema = infer_schema({"name": "Ada", "age": 36, "score": 9.5, "active": True, "tags": ["x"], "none": None})
        assert schema["required"] == ["name", "age", "score", "active", "tags", "none"]
        props = schema["properties"]
        assert props["name"] == {"type": "string"}
        assert props["age"] == {"type": "integer"}
        assert props["score"] == {"type": "number"}
        assert props["active"] == {"type": "boolean"}
        assert props["tags"] == {"type": "array", "items": {"type": "string"}}
        assert props["none"] == {"type": "null"}

    def test_nested_object(self):
        """Test nested objects get their own required list."""
        schema = infer_schema(json.loads('{"customer": {"id": 1}}'))
        assert schema["properties"]["customer"]["required"] == ["id"]
