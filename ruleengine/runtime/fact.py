"""Dynamic fact container with dotted-path access.

Paths are dot-separated keys, each optionally followed by one or more
``[index]`` selectors, e.g. ``order.items[0].price``.
"""

from __future__ import annotations

import copy
import re
from typing import Any

_SEGMENT = re.compile(r"^([^\[\]]*)((?:\[\d+\])*)$")
_INDEX = re.compile(r"\[(\d+)\]")


def split_path(path: str) -> list[tuple[str, list[int]]]:
    """Split a path into ``(key, [indices])`` segments.

    A segment that does not parse as ``key[i][j]`` is taken literally as a key.
    """
    segments = []
    for raw in path.split("."):
        match = _SEGMENT.match(raw)
        if match is None:
            segments.append((raw, []))
            continue
        indices = [int(i) for i in _INDEX.findall(match.group(2))]
        segments.append((match.group(1), indices))
    return segments


class Fact:
    """An untyped tree of maps, lists and scalars labelled with a fact type."""

    __slots__ = ("fact_type", "data")

    def __init__(self, fact_type: str, data: dict[str, Any] | None = None):
        self.fact_type = fact_type
        self.data: dict[str, Any] = data if data is not None else {}

    def get(self, path: str) -> Any:
        """Value at ``path`` or None when any segment is missing."""
        if not path:
            return None
        current: Any = self.data
        for key, indices in split_path(path):
            if key:
                if not isinstance(current, dict):
                    return None
                current = current.get(key)
            for index in indices:
                if not isinstance(current, list) or index >= len(current):
                    return None
                current = current[index]
            if current is None:
                return None
        return current

    def has_value(self, path: str) -> bool:
        return self.get(path) is not None

    def set(self, path: str, value: Any) -> bool:
        """Write ``value`` at ``path``, creating intermediate maps.

        Returns False (and changes nothing) when a non-map value or an
        out-of-range index blocks the path.
        """
        if not path:
            return False
        segments = split_path(path)
        current: Any = self.data
        for position, (key, indices) in enumerate(segments):
            last = position == len(segments) - 1
            if key:
                if not isinstance(current, dict):
                    return False
                if last and not indices:
                    current[key] = value
                    return True
                child = current.get(key)
                if child is None:
                    if indices:
                        return False
                    child = {}
                    current[key] = child
                current = child
            for i, index in enumerate(indices):
                if not isinstance(current, list) or index >= len(current):
                    return False
                if last and i == len(indices) - 1:
                    current[index] = value
                    return True
                current = current[index]
        return False

    def copy(self) -> "Fact":
        return Fact(self.fact_type, copy.deepcopy(self.data))

    def to_dict(self) -> dict[str, Any]:
        return self.data

    def __repr__(self) -> str:
        return f"Fact({self.fact_type!r}, {self.data!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Fact):
            return NotImplemented
        return self.fact_type == other.fact_type and self.data == other.data
