"""Filtering of importable entity names shown before an OpenAPI import."""

from __future__ import annotations

import re
from typing import Any

from .importer import extract_openapi_entities, load_document

_SYNTHETIC_PREFIX = re.compile(r"^(GET|POST|PUT|DELETE|PATCH|Request)_")
_STATUS_SUFFIX = re.compile(r".*_\d{3}(_.*)?$")

INFERRED_SCHEMA_NAME = "InferredSchema"


def is_importable_entity(name: str) -> bool:
    """False for synthetic request/response entity names."""
    if _SYNTHETIC_PREFIX.match(name) or _STATUS_SUFFIX.match(name):
        return False
    return "_application_" not in name and "_text_" not in name


def filter_entities(names: list[str]) -> list[str]:
    return [name for name in names if is_importable_entity(name)]


def fallback_names(document: Any) -> list[str]:
    """Names offered when a document yields no importable entities."""
    if not isinstance(document, dict):
        return []
    if any(key in document for key in ("type", "properties", "$schema")):
        return [document.get("title") or "Schema"]
    return [INFERRED_SCHEMA_NAME]


def preview_entities(content: str, fetch_timeout: float = 30.0) -> list[str]:
    """Entity names a user can pick from ``content``."""
    document = load_document(content, fetch_timeout)
    names = filter_entities(list(extract_openapi_entities(document)))
    if names:
        return names
    return fallback_names(document)
