"""Impact domain - attribute usage analysis and rule rewriting."""

from .analyzer import Usage, find_usages, risk_level
from .rewriter import delete_in_rule, rename_in_rule, uses_attribute

__all__ = ["Usage", "find_usages", "risk_level", "delete_in_rule", "rename_in_rule", "uses_attribute"]
