"""Normalized property tree for schemas, with type lookup by path.

The canonical stored form of a schema is a JSON Schema document with all
``$ref``s inlined. Reference cycles are cut with a placeholder object that
carries an ``x-circular-ref`` marker; in the property tree the placeholder
becomes a node with ``circular_ref`` set, which validation treats as an
opaque leaf.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Iterator

from ruleengine.core.models import CamelModel
from ruleengine.core.temporal import parse_temporal
from ruleengine.runtime.paths import normalize_path

SCHEMA_DIALECT = "http://json-schema.org/draft-07/schema#"
CIRCULAR_MARKER = "x-circular-ref"

PRIMITIVE_TYPES = ("object", "array", "string", "integer", "number", "boolean", "null")
CONSTRAINT_KEYS = ("minimum", "maximum", "minLength", "maxLength", "pattern")

_PATH_SEGMENT = re.compile(r"^([^\[\]]*)((?:\[(?:\d+|\*)?\])*)$")
_SELECTOR = re.compile(r"\[(\d+|\*)?\]")


class PropertyNode(CamelModel):
    """One node of a schema's property tree."""

    name: str
    path: str = ""
    type: str = "object"
    format: str | None = None
    description: str | None = None
    required: bool = False
    enum_values: list[Any] | None = None
    default_value: Any = None
    constraints: dict[str, Any] | None = None
    properties: list[PropertyNode] | None = None
    items: PropertyNode | None = None
    additional_properties: PropertyNode | None = None
    circular_ref: str | None = None

    def child(self, name: str) -> PropertyNode | None:
        for node in self.properties or ():
            if node.name == name:
                return node
        return None

    @property
    def is_free_object(self) -> bool:
        """An object that declares no shape at all."""
        return self.type == "object" and not self.properties and self.additional_properties is None


@dataclass(frozen=True)
class TypeInfo:
    """Result of a type lookup by path."""

    type: str
    format: str | None = None
    enum_values: tuple[Any, ...] | None = None
    required: bool = False
    opaque: bool = False


def circular_reference(label: str) -> dict[str, Any]:
    """Placeholder JSON Schema for a cut reference cycle."""
    return {"type": "object", "description": f"circular reference to {label}", CIRCULAR_MARKER: label}


# =============================================================================
# Type checks
# =============================================================================


def python_type_name(value: Any) -> str:
    return type(value).__name__


def value_matches_type(value: Any, type_name: str, format_name: str | None = None) -> bool:
    """Whether a JSON value conforms to a declared property type."""
    if type_name == "integer":
        if isinstance(value, bool):
            return False
        return isinstance(value, int) or (isinstance(value, float) and value.is_integer())
    if type_name == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if type_name == "boolean":
        return isinstance(value, bool)
    if type_name == "string":
        if not isinstance(value, str):
            return False
        if format_name in ("date", "date-time"):
            try:
                parse_temporal(value)
            except ValueError:
                return False
        return True
    if type_name == "array":
        return isinstance(value, list)
    if type_name == "object":
        return isinstance(value, dict)
    if type_name == "null":
        return value is None
    return True


# =============================================================================
# JSON Schema <-> property tree
# =============================================================================


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


def _declared_type(doc: dict[str, Any]) -> str:
    declared = doc.get("type")
    if isinstance(declared, list):
        non_null = [t for t in declared if t != "null"]
        declared = non_null[0] if non_null else "null"
    if declared is None:
        if "properties" in doc or "additionalProperties" in doc:
            return "object"
        if "items" in doc:
            return "array"
        if doc.get("enum"):
            first = doc["enum"][0]
            if isinstance(first, bool):
                return "boolean"
            if isinstance(first, int):
                return "integer"
            if isinstance(first, float):
                return "number"
            if isinstance(first, str):
                return "string"
        return "object"
    return declared if declared in PRIMITIVE_TYPES else "object"


def flatten_composition(doc: dict[str, Any]) -> dict[str, Any]:
    """Merge ``allOf`` members; take the first ``oneOf``/``anyOf`` variant."""
    if "allOf" not in doc and "oneOf" not in doc and "anyOf" not in doc:
        return doc
    merged = {k: v for k, v in doc.items() if k not in ("allOf", "oneOf", "anyOf")}
    parts = [p for p in doc.get("allOf", []) if isinstance(p, dict)]
    for key in ("oneOf", "anyOf"):
        variants = [v for v in doc.get(key, []) if isinstance(v, dict)]
        if variants:
            parts.append(variants[0])
    for part in parts:
        part = flatten_composition(part)
        if "properties" in part:
            merged["properties"] = {**merged.get("properties", {}), **part["properties"]}
        if "required" in part:
            merged["required"] = list(dict.fromkeys([*merged.get("required", []), *part["required"]]))
        for key, value in part.items():
            if key not in ("properties", "required"):
                merged.setdefault(key, value)
    return merged


def property_tree_from_json_schema(
    doc: dict[str, Any], name: str, path: str = "", required: bool = False
) -> PropertyNode:
    """Walk a JSON Schema document into a property tree."""
    if not isinstance(doc, dict):
        return PropertyNode(name=name, path=path, type="object", required=required)
    if CIRCULAR_MARKER in doc:
        return PropertyNode(
            name=name,
            path=path,
            type="object",
            description=doc.get("description"),
            required=required,
            circular_ref=str(doc[CIRCULAR_MARKER]),
        )

    doc = flatten_composition(doc)
    constraints = {key: doc[key] for key in CONSTRAINT_KEYS if key in doc}
    node = PropertyNode(
        name=name,
        path=path,
        type=_declared_type(doc),
        format=doc.get("format"),
        description=doc.get("description"),
        required=required,
        enum_values=list(doc["enum"]) if isinstance(doc.get("enum"), list) else None,
        default_value=doc.get("default"),
        constraints=constraints or None,
    )

    properties = doc.get("properties")
    if isinstance(properties, dict):
        required_names = set(doc.get("required") or [])
        node.properties = [
            property_tree_from_json_schema(child, key, _join(path, key), key in required_names)
            for key, child in properties.items()
        ]

    items = doc.get("items")
    if isinstance(items, list):
        items = items[0] if items else None
    if isinstance(items, dict):
        node.items = property_tree_from_json_schema(items, "items", f"{path}[]")

    additional = doc.get("additionalProperties")
    if isinstance(additional, dict):
        node.additional_properties = property_tree_from_json_schema(additional, "additionalProperties", f"{path}[*]")

    return node


def json_schema_from_property_tree(node: PropertyNode) -> dict[str, Any]:
    """Inverse of :func:`property_tree_from_json_schema` for one node."""
    if node.circular_ref:
        return circular_reference(node.circular_ref)

    doc: dict[str, Any] = {"type": node.type}
    if node.format:
        doc["format"] = node.format
    if node.description:
        doc["description"] = node.description
    if node.enum_values is not None:
        doc["enum"] = list(node.enum_values)
    if node.default_value is not None:
        doc["default"] = node.default_value
    if node.constraints:
        doc.update({key: value for key, value in node.constraints.items() if value is not None})
    if node.properties is not None:
        doc["properties"] = {child.name: json_schema_from_property_tree(child) for child in node.properties}
        required = [child.name for child in node.properties if child.required]
        if required:
            doc["required"] = required
    if node.items is not None:
        doc["items"] = json_schema_from_property_tree(node.items)
    if node.additional_properties is not None:
        doc["additionalProperties"] = json_schema_from_property_tree(node.additional_properties)
    return doc


def json_schema_document(name: str, body: dict[str, Any]) -> dict[str, Any]:
    """Wrap a root JSON Schema with dialect and title."""
    return {"$schema": SCHEMA_DIALECT, "title": name, **{k: v for k, v in body.items() if k not in ("$schema", "title")}}


# =============================================================================
# Schema model
# =============================================================================


def _tokenize(path: str) -> Iterator[tuple[str, list[str]]]:
    for raw in path.split("."):
        match = _PATH_SEGMENT.match(raw)
        if match is None:
            yield raw, []
            continue
        yield match.group(1), [sel or "" for sel in _SELECTOR.findall(match.group(2))]


class SchemaModel:
    """A named property tree with path-based lookups."""

    def __init__(self, name: str, root: PropertyNode):
        self.name = name
        self.root = root

    @classmethod
    def from_json_schema(cls, name: str, doc: dict[str, Any] | str) -> SchemaModel:
        if isinstance(doc, str):
            doc = json.loads(doc)
        return cls(name, property_tree_from_json_schema(doc, name))

    def _walk(self, path: str) -> tuple[PropertyNode | None, bool]:
        """Resolve a path to ``(node, opaque)``.

        Accepts fact paths (``items[0].price``) as well as tree paths
        (``items[].price``, ``meta[*]``).
        """
        node = self.root
        for key, selectors in _tokenize(normalize_path(path, self.name)):
            if key:
                if node.circular_ref or node.is_free_object:
                    return node, True
                child = node.child(key) if node.type == "object" else None
                if child is None:
                    child = node.additional_properties
                if child is None:
                    return None, False
                node = child
            for selector in selectors:
                if node.circular_ref:
                    return node, True
                if selector == "*":
                    nxt = node.additional_properties
                elif node.type == "array":
                    nxt = node.items
                    if nxt is None:
                        return node, True
                else:
                    return None, False
                if nxt is None:
                    return None, False
                node = nxt
        return node, bool(node.circular_ref)

    def resolve(self, path: str) -> PropertyNode | None:
        return self._walk(path)[0]

    def contains_path(self, path: str) -> bool:
        return bool(path) and self._walk(path)[0] is not None

    def type_of(self, path: str) -> TypeInfo | None:
        """Declared type at ``path``, or None when the path is not in the schema."""
        if not path:
            return None
        node, opaque = self._walk(path)
        if node is None:
            return None
        if opaque:
            return TypeInfo(type="object", required=node.required, opaque=True)
        return TypeInfo(
            type=node.type,
            format=node.format,
            enum_values=tuple(node.enum_values) if node.enum_values is not None else None,
            required=node.required,
        )

    def leaf_paths(self) -> list[str]:
        """Paths of every leaf in the tree."""
        leaves: list[str] = []

        def visit(node: PropertyNode) -> None:
            children = [*(node.properties or ()), *filter(None, (node.items, node.additional_properties))]
            if not children:
                if node.path:
                    leaves.append(node.path)
                return
            for child in children:
                visit(child)

        visit(self.root)
        return leaves

    def validate_fact(self, data: Any) -> list[str]:
        """Type errors of a fact against the declared tree; extra keys are allowed."""
        if not isinstance(data, dict):
            return [f"Fact expects object type, but got {python_type_name(data)}"]
        errors: list[str] = []
        self._check(self.root, data, "", errors)
        return errors

    def _check(self, node: PropertyNode, value: Any, path: str, errors: list[str]) -> None:
        if value is None or node.circular_ref:
            return
        if not value_matches_type(value, node.type):
            errors.append(f"Field '{path}' expects {node.type} type, but got {python_type_name(value)}")
            return
        if isinstance(value, dict):
            for key, child_value in value.items():
                child = node.child(key) or node.additional_properties
                if child is not None:
                    self._check(child, child_value, _join(path, key), errors)
        elif isinstance(value, list) and node.items is not None:
            for index, item in enumerate(value):
                self._check(node.items, item, f"{path}[{index}]", errors)
