"""
Runtime package: facts, condition evaluation, actions and the rule engine.

Provides:
- Fact containers with dotted-path access
- Operator dispatch and condition-tree evaluation
- Action execution with a per-execution side-effect sink
- The priority-ordered agenda loop
- A compiled-rule cache keyed by tenant and schema
"""

from .actions import ActionExecutor, AuditEntry, SideEffectSink, WebhookResult, render_template
from .cache import CompiledRuleCache, get_rule_cache, reset_rule_cache
from .engine import CompiledRule, ExecutionResult, FiredRule, RuleEngine, RuleError
from .evaluator import ConditionEvaluator, TraceStep
from .expressions import evaluate_expression, referenced_paths
from .fact import Fact
from .operators import OPERATORS, apply_operator
from .paths import normalize_path

__all__ = [
    # Facts
    "Fact",
    "normalize_path",
    # Evaluation
    "OPERATORS",
    "apply_operator",
    "ConditionEvaluator",
    "TraceStep",
    "evaluate_expression",
    "referenced_paths",
    # Actions
    "ActionExecutor",
    "SideEffectSink",
    "AuditEntry",
    "WebhookResult",
    "render_template",
    # Engine
    "CompiledRule",
    "ExecutionResult",
    "FiredRule",
    "RuleError",
    "RuleEngine",
    # Cache
    "CompiledRuleCache",
    "get_rule_cache",
    "reset_rule_cache",
]
