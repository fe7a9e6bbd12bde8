"""Schema importers: OpenAPI 2/3, JSON Schema and JSON examples.

Every importer produces canonical JSON Schema documents with all local
``$ref``s inlined; :func:`~ruleengine.schema_registry.model.property_tree_from_json_schema`
turns those into property trees.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

import requests
import yaml

from ruleengine.core.errors import ValidationError
from .model import circular_reference

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "patch", "head", "options")


def sanitize_name(value: str) -> str:
    """Replace non-alphanumerics with ``_``, collapse repeats and trim."""
    cleaned = re.sub(r"[^A-Za-z0-9]", "_", value)
    cleaned = re.sub(r"_+", "_", cleaned)
    return cleaned.strip("_")


# =============================================================================
# Loading
# =============================================================================


def fetch_content(url: str, timeout: float = 30.0) -> str:
    """Download schema text from a URL."""
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise ValidationError(f"Failed to fetch schema from {url}: {exc}", field="content") from exc
    return response.text


def load_document(content: str, fetch_timeout: float = 30.0) -> Any:
    """Parse JSON or YAML text, fetching it first when it is a URL."""
    if content is None or not content.strip():
        raise ValidationError("Content is empty", field="content")
    text = content.strip()
    if text.startswith(("http://", "https://")) and "\n" not in text:
        logger.info("Fetching schema content from %s", text)
        text = fetch_content(text, fetch_timeout)
    try:
        return json.loads(text)
    except ValueError:
        pass
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValidationError(f"Content is neither valid JSON nor YAML: {exc}", field="content") from exc


# =============================================================================
# $ref resolution
# =============================================================================


class RefResolver:
    """Inlines local ``$ref``s, cutting cycles with a placeholder node."""

    def __init__(self, document: dict[str, Any]):
        self.document = document

    def resolve_pointer(self, ref: str) -> Any:
        """Resolve a local JSON pointer (``#/a/b``); None for anything else."""
        if not ref.startswith("#"):
            return None
        target: Any = self.document
        pointer = ref[1:].lstrip("/")
        for part in pointer.split("/") if pointer else []:
            part = part.replace("~1", "/").replace("~0", "~")
            if isinstance(target, dict) and part in target:
                target = target[part]
            elif isinstance(target, list) and part.isdigit() and int(part) < len(target):
                target = target[int(part)]
            else:
                return None
        return target

    def inline(self, node: Any, stack: frozenset[str] = frozenset()) -> Any:
        """Copy of ``node`` with every reachable ``$ref`` replaced.

        Args:
            node: schema fragment
            stack: refs currently being expanded on this branch
        """
        if isinstance(node, list):
            return [self.inline(item, stack) for item in node]
        if not isinstance(node, dict):
            return node

        ref = node.get("$ref")
        if isinstance(ref, str):
            label = ref.rstrip("/").rsplit("/", 1)[-1].lstrip("#") or "root"
            if ref in stack:
                return circular_reference(label)
            target = self.resolve_pointer(ref)
            if target is None:
                logger.warning("Unresolvable $ref %s", ref)
                return {"type": "object", "description": f"unresolved reference {ref}"}
            resolved = self.inline(target, stack | {ref})
            siblings = {key: self.inline(value, stack) for key, value in node.items() if key != "$ref"}
            if siblings and isinstance(resolved, dict):
                resolved = {**resolved, **siblings}
            return resolved

        return {key: self.inline(value, stack) for key, value in node.items()}


# =============================================================================
# OpenAPI
# =============================================================================


def _media_suffix(media_type: str) -> str:
    return media_type.replace("/", "_")


def _add_entity(entities: dict[str, Any], base: str, media_type: str, schema: Any) -> None:
    if not isinstance(schema, dict) or not schema:
        return
    name = base if base not in entities else f"{base}_{_media_suffix(media_type)}"
    entities[name] = schema


def extract_openapi_entities(document: Any) -> dict[str, dict[str, Any]]:
    """Named, fully-inlined schemas of an OpenAPI 2.0 or 3.x document.

    Includes ``components.schemas`` (or ``definitions``) plus synthetic
    entries for request bodies (``Request_<path>``) and responses
    (``<METHOD>_<path>_<status>``). Documents that are not OpenAPI yield
    an empty mapping.
    """
    if not isinstance(document, dict):
        raise ValidationError("OpenAPI content must be a JSON or YAML object", field="content")

    if "swagger" in document:
        is_v2 = True
        prefix = "#/definitions/"
        named = document.get("definitions") or {}
    elif "openapi" in document:
        is_v2 = False
        prefix = "#/components/schemas/"
        named = (document.get("components") or {}).get("schemas") or {}
    else:
        logger.info("Content has neither 'openapi' nor 'swagger'; no entities extracted")
        return {}

    resolver = RefResolver(document)
    entities: dict[str, dict[str, Any]] = {}
    for name, schema in named.items():
        entities[name] = resolver.inline(schema, frozenset({prefix + name}))

    default_media = (document.get("consumes") or ["application/json"])[0] if is_v2 else "application/json"
    for path, item in (document.get("paths") or {}).items():
        if not isinstance(item, dict):
            continue
        sanitized = sanitize_name(path)
        for method in HTTP_METHODS:
            operation = item.get(method)
            if not isinstance(operation, dict):
                continue
            if is_v2:
                _collect_v2_operation(resolver, entities, operation, method, sanitized, default_media)
            else:
                _collect_v3_operation(resolver, entities, operation, method, sanitized)

    return entities


def _collect_v3_operation(
    resolver: RefResolver, entities: dict, operation: dict, method: str, sanitized: str
) -> None:
    body = resolver.inline(operation.get("requestBody"))
    if isinstance(body, dict):
        for media_type, media in (body.get("content") or {}).items():
            if isinstance(media, dict):
                _add_entity(entities, f"Request_{sanitized}", media_type, media.get("schema"))

    for status, response in (operation.get("responses") or {}).items():
        response = resolver.inline(response)
        if not isinstance(response, dict):
            continue
        for media_type, media in (response.get("content") or {}).items():
            if isinstance(media, dict):
                _add_entity(entities, f"{method.upper()}_{sanitized}_{status}", media_type, media.get("schema"))


def _collect_v2_operation(
    resolver: RefResolver, entities: dict, operation: dict, method: str, sanitized: str, default_media: str
) -> None:
    consumes = (operation.get("consumes") or [default_media])[0]
    produces = (operation.get("produces") or ["application/json"])[0]
    for parameter in operation.get("parameters") or []:
        parameter = resolver.inline(parameter)
        if isinstance(parameter, dict) and parameter.get("in") == "body":
            _add_entity(entities, f"Request_{sanitized}", consumes, parameter.get("schema"))

    for status, response in (operation.get("responses") or {}).items():
        response = resolver.inline(response)
        if isinstance(response, dict):
            _add_entity(entities, f"{method.upper()}_{sanitized}_{status}", produces, response.get("schema"))


def parse_openapi(content: str, fetch_timeout: float = 30.0) -> dict[str, dict[str, Any]]:
    """Load OpenAPI text (or URL) and extract its entities."""
    return extract_openapi_entities(load_document(content, fetch_timeout))


# =============================================================================
# JSON Schema and examples
# =============================================================================


def resolve_json_schema(document: Any) -> dict[str, Any]:
    """Inline local refs of a JSON Schema and drop its definition tables."""
    if not isinstance(document, dict):
        raise ValidationError("JSON Schema must be an object", field="content")
    resolver = RefResolver(document)
    body = {key: value for key, value in document.items() if key not in ("definitions", "$defs")}
    return resolver.inline(body, frozenset({"#"}))


def infer_schema(example: Any) -> dict[str, Any]:
    """Smallest JSON Schema matching an example value; every key is required."""
    if isinstance(example, dict):
        return {
            "type": "object",
            "properties": {key: infer_schema(value) for key, value in example.items()},
            "required": list(example.keys()),
        }
    if isinstance(example, list):
        return {"type": "array", "items": infer_schema(example[0]) if example else {"type": "object"}}
    if isinstance(example, bool):
        return {"type": "boolean"}
    if isinstance(example, int):
        return {"type": "integer"}
    if isinstance(example, float):
        return {"type": "number"}
    if isinstance(example, str):
        return {"type": "string"}
    return {"type": "null"}
