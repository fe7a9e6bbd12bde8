"""Condition tree evaluation against a single fact."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from ruleengine.rules.models import Condition, ConditionGroup, ConditionOperator, GroupOperator
from .fact import Fact
from .operators import apply_operator
from .paths import normalize_path


class TraceStep(BaseModel):
    """A single step in an evaluation trace."""

    node: str
    condition: str
    result: bool
    value_checked: Any = None


class ConditionEvaluator:
    """Evaluates condition groups for rules bound to one schema.

    Evaluation is pure: the fact is only read.
    """

    def __init__(self, schema_name: str | None = None):
        self.schema_name = schema_name

    def evaluate(self, group: ConditionGroup, fact: Fact) -> bool:
        """Evaluate a condition group (all/any)."""
        return self._evaluate_group(group, fact, None, "conditions")

    def explain(self, group: ConditionGroup, fact: Fact) -> tuple[bool, list[TraceStep]]:
        """Evaluate and return the trace of every condition visited."""
        trace: list[TraceStep] = []
        result = self._evaluate_group(group, fact, trace, "conditions")
        return result, trace

    def evaluate_condition(self, condition: Condition, fact: Fact) -> bool:
        return self._evaluate_condition(condition, fact, None, "condition")

    def _evaluate_group(
        self, group: ConditionGroup, fact: Fact, trace: list[TraceStep] | None, prefix: str
    ) -> bool:
        # An empty group places no constraint on the fact
        if not group.conditions:
            return True

        want_all = group.operator == GroupOperator.ALL
        for i, node in enumerate(group.conditions):
            node_prefix = f"{prefix}.{group.operator.value}[{i}]"
            if isinstance(node, ConditionGroup):
                result = self._evaluate_group(node, fact, trace, node_prefix)
            else:
                result = self._evaluate_condition(node, fact, trace, node_prefix)

            if want_all and not result:
                return False
            if not want_all and result:
                return True

        return want_all

    def _evaluate_condition(
        self, condition: Condition, fact: Fact, trace: list[TraceStep] | None, node: str
    ) -> bool:
        left = fact.get(normalize_path(condition.fact, self.schema_name))
        right = self.resolve_right(condition, fact)
        operator = condition.operator

        if left is None and operator != ConditionOperator.IS_NULL:
            # null == null holds; every other comparison against a missing value fails
            result = operator == ConditionOperator.EQUALS and right is None
        else:
            result = apply_operator(operator.value, left, right)

        if trace is not None:
            trace.append(
                TraceStep(
                    node=node,
                    condition=f"{condition.fact} {operator.value} {condition.value!r}",
                    result=result,
                    value_checked=left,
                )
            )
        return result

    def resolve_right(self, condition: Condition, fact: Fact) -> Any:
        """Literal value, or the value at another path when ``valueIsField``."""
        if condition.value_is_field and isinstance(condition.value, str):
            return fact.get(normalize_path(condition.value, self.schema_name))
        return condition.value
