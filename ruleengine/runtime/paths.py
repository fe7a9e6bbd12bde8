"""Normalization of condition and action paths.

Older rule definitions prefix paths with the schema (type) name, e.g.
``Order.status``. Both forms resolve to the same fact location.
"""

import re

_TYPE_NAME = re.compile(r"^[A-Z][A-Za-z0-9]*$")


def normalize_path(path: str, schema_name: str | None = None) -> str:
    """Strip a leading schema-name segment from ``path``.

    The first segment is removed when it equals ``schema_name``
    (case-insensitive) or looks like a type name (capitalized identifier),
    provided at least one more segment follows.
    """
    if not path:
        return path
    head, sep, rest = path.partition(".")
    if not sep or not rest:
        return path
    if schema_name and head.lower() == schema_name.lower():
        return rest
    if _TYPE_NAME.match(head):
        return rest
    return path


def path_prefix(path: str, schema_name: str | None = None) -> str:
    """The leading segment removed by :func:`normalize_path`, with its dot."""
    normalized = normalize_path(path, schema_name)
    return path[: len(path) - len(normalized)]


def references(path: str, attribute: str) -> bool:
    """True when ``path`` is ``attribute`` or one of its dotted descendants."""
    return path == attribute or path.startswith(attribute + ".") or path.startswith(attribute + "[")
