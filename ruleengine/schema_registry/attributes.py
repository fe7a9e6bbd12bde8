"""Attribute-level edits of a canonical JSON Schema document.

Attributes are addressed by name; dotted names (``customer.email``) reach
into nested object properties. Edits touch the ``properties`` map and the
parent's ``required`` list, preserving key order.
"""

from __future__ import annotations

from typing import Any

from ruleengine.core.errors import ConflictError, NotFoundError, ValidationError
from .model import PropertyNode, json_schema_from_property_tree, property_tree_from_json_schema

_TYPE_ALIASES = {
    "int": "integer",
    "integer": "integer",
    "long": "integer",
    "double": "number",
    "float": "number",
    "decimal": "number",
    "number": "number",
    "bool": "boolean",
    "boolean": "boolean",
    "array": "array",
    "list": "array",
    "object": "object",
    "map": "object",
    "null": "null",
}


def map_type(type_name: str | None) -> str:
    """Map a user-facing type name onto a JSON Schema type."""
    if not type_name:
        return "string"
    return _TYPE_ALIASES.get(type_name.strip().lower(), "string")


def _locate(doc: dict[str, Any], name: str, create: bool = False) -> tuple[dict[str, Any], str]:
    """Return ``(parent_schema, key)`` for a possibly dotted attribute name."""
    if not name:
        raise ValidationError("Attribute name is required", field="name")
    *parents, key = name.split(".")
    parent = doc
    for part in parents:
        child = (parent.get("properties") or {}).get(part)
        if not isinstance(child, dict):
            raise NotFoundError(f"Attribute '{name}' not found")
        parent = child
    if create:
        parent.setdefault("properties", {})
    return parent, key


def has_attribute(doc: dict[str, Any], name: str) -> bool:
    try:
        parent, key = _locate(doc, name)
    except NotFoundError:
        return False
    return key in (parent.get("properties") or {})


def list_attributes(doc: dict[str, Any]) -> list[PropertyNode]:
    """Top-level attributes as property nodes."""
    required = set(doc.get("required") or [])
    return [
        property_tree_from_json_schema(schema, key, key, key in required)
        for key, schema in (doc.get("properties") or {}).items()
    ]


def _attribute_schema(node: PropertyNode) -> dict[str, Any]:
    return json_schema_from_property_tree(node.model_copy(update={"type": map_type(node.type)}))


def _set_required(parent: dict[str, Any], key: str, required: bool) -> None:
    names = [n for n in parent.get("required") or [] if n != key]
    if required:
        names.append(key)
    if names:
        parent["required"] = names
    else:
        parent.pop("required", None)


def add_attribute(doc: dict[str, Any], node: PropertyNode) -> None:
    parent, key = _locate(doc, node.name, create=True)
    if key in parent["properties"]:
        raise ConflictError(f"Attribute '{node.name}' already exists")
    parent["properties"][key] = _attribute_schema(node)
    _set_required(parent, key, node.required)


def update_attribute(doc: dict[str, Any], name: str, node: PropertyNode) -> None:
    """Replace an attribute's definition; a different ``node.name`` renames it."""
    parent, key = _locate(doc, name)
    properties = parent.get("properties") or {}
    if key not in properties:
        raise NotFoundError(f"Attribute '{name}' not found")
    new_key = node.name.rsplit(".", 1)[-1] if node.name else key
    if new_key != key and new_key in properties:
        raise ConflictError(f"Attribute '{new_key}' already exists")
    parent["properties"] = {
        (new_key if k == key else k): (_attribute_schema(node) if k == key else v) for k, v in properties.items()
    }
    _set_required(parent, key, False)
    _set_required(parent, new_key, node.required)


def delete_attribute(doc: dict[str, Any], name: str) -> None:
    if not remove_attribute(doc, name):
        raise NotFoundError(f"Attribute '{name}' not found")


def remove_attribute(doc: dict[str, Any], name: str) -> bool:
    """Drop an attribute from ``properties`` and ``required``; False if absent."""
    try:
        parent, key = _locate(doc, name)
    except NotFoundError:
        return False
    properties = parent.get("properties") or {}
    if key not in properties:
        return False
    del properties[key]
    _set_required(parent, key, False)
    return True


def sibling_path(old_name: str, new_name: str) -> str:
    """Full path of ``old_name`` after renaming its leaf to ``new_name``.

    ``new_name`` is either a bare leaf or a full path under the same parent.
    """
    *parents, _ = old_name.split(".")
    *new_parents, leaf = new_name.split(".")
    if new_parents and new_parents != parents:
        raise ValidationError("A rename cannot move an attribute to another parent", field="newName")
    return ".".join([*parents, leaf])


def rename_attribute(doc: dict[str, Any], old_name: str, new_name: str) -> bool:
    """Swap the key in ``properties`` and ``required``; False if absent."""
    try:
        parent, key = _locate(doc, old_name)
    except NotFoundError:
        return False
    properties = parent.get("properties") or {}
    if key not in properties:
        return False
    new_key = new_name.rsplit(".", 1)[-1]
    if new_key in properties and new_key != key:
        raise ConflictError(f"Attribute '{new_name}' already exists")
    parent["properties"] = {(new_key if k == key else k): v for k, v in properties.items()}
    if key in (parent.get("required") or []):
        parent["required"] = [new_key if n == key else n for n in parent["required"]]
    return True


def retype_attribute(doc: dict[str, Any], name: str, new_type: str) -> bool:
    """Replace an attribute's ``type``; False if absent."""
    try:
        parent, key = _locate(doc, name)
    except NotFoundError:
        return False
    schema = (parent.get("properties") or {}).get(key)
    if not isinstance(schema, dict):
        return False
    schema["type"] = map_type(new_type)
    if schema["type"] != "object":
        schema.pop("properties", None)
        schema.pop("required", None)
    if schema["type"] != "string":
        schema.pop("format", None)
    if schema["type"] != "array":
        schema.pop("items", None)
    return True
