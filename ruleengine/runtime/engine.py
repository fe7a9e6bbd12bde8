"""Priority-ordered rule engine over a per-execution working memory.

The agenda holds ``(rule position, fact sequence)`` pairs. Rules are
positioned by ``(priority DESC, id ASC)`` and facts by insertion order, so
the smallest pair is always the next firing. A pair fires at most once per
fact version: a MODIFY bumps the fact's version and lets other rules
re-match it, while ``no-loop`` rules stay blocked on that fact. Once a
``lock-on-active`` rule fires it takes no new activations; matches already on
the agenda still fire.
"""

from __future__ import annotations

import copy
import heapq
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any, Iterable, Sequence

from ruleengine.core.temporal import as_utc_datetime, parse_temporal
from ruleengine.rules.models import RuleDefinition
from .actions import ActionExecutor, ActionOutcome, AuditEntry, SideEffectSink, WebhookResult
from .evaluator import ConditionEvaluator
from .fact import Fact

if TYPE_CHECKING:
    from ruleengine.schema_registry.model import SchemaModel

logger = logging.getLogger(__name__)

DEFAULT_MAX_FIRINGS = 1000
DEADLINE_MESSAGE = "deadline exceeded"


# =============================================================================
# Compiled rules
# =============================================================================


@dataclass(frozen=True)
class CompiledRule:
    """Immutable execution form of a stored rule."""

    rule_id: int
    name: str
    schema_id: int
    schema_name: str
    priority: int
    enabled: bool
    no_loop: bool
    lock_on_active: bool
    activation_group: str | None
    date_effective: date | datetime | None
    date_expires: date | datetime | None
    definition: RuleDefinition

    @classmethod
    def from_definition(cls, rule_id: int, definition: RuleDefinition, schema_name: str) -> CompiledRule:
        return cls(
            rule_id=rule_id,
            name=definition.name,
            schema_id=definition.schema_id,
            schema_name=schema_name,
            priority=definition.priority,
            enabled=definition.enabled,
            no_loop=definition.effective_no_loop,
            lock_on_active=definition.lock_on_active,
            activation_group=definition.activation_group or None,
            date_effective=parse_temporal(definition.date_effective) if definition.date_effective else None,
            date_expires=parse_temporal(definition.date_expires) if definition.date_expires else None,
            definition=definition.clone(),
        )

    def is_active(self, now: datetime) -> bool:
        """Enabled and inside the effective-date window.

        Date-only bounds compare against today's date, so a rule expiring
        today is still active for the whole day.
        """
        if not self.enabled:
            return False
        if self.date_effective is not None and _after(self.date_effective, now, bound="start"):
            return False
        if self.date_expires is not None and _after(self.date_expires, now, bound="end"):
            return False
        return True


def _after(bound_value: date | datetime, now: datetime, bound: str) -> bool:
    """For ``start``: bound is later than now. For ``end``: bound is earlier than now."""
    if isinstance(bound_value, datetime):
        bound_dt = as_utc_datetime(bound_value)
        return bound_dt > now if bound == "start" else bound_dt < now
    today = now.date()
    return bound_value > today if bound == "start" else bound_value < today


# =============================================================================
# Results
# =============================================================================


@dataclass
class FiredRule:
    rule_id: int
    rule_name: str
    fire_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"ruleId": self.rule_id, "ruleName": self.rule_name, "fireCount": self.fire_count}


@dataclass
class RuleError:
    rule_id: int
    rule_name: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"ruleId": self.rule_id, "ruleName": self.rule_name, "message": self.message}


@dataclass
class ExecutionResult:
    """Outcome of one execution."""

    success: bool
    result_facts: list[dict[str, Any]] = field(default_factory=list)
    fired_rules: list[FiredRule] = field(default_factory=list)
    webhook_results: list[WebhookResult] = field(default_factory=list)
    audit_logs: list[AuditEntry] = field(default_factory=list)
    rule_errors: list[RuleError] = field(default_factory=list)
    total_firings: int = 0
    firing_cap_reached: bool = False
    execution_time_ms: int = 0
    error_message: str | None = None

    def fire_counts(self) -> dict[int, int]:
        return {fired.rule_id: fired.fire_count for fired in self.fired_rules}

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "resultFacts": self.result_facts,
            "firedRules": [fired.to_dict() for fired in self.fired_rules],
            "webhookResults": [result.to_dict() for result in self.webhook_results],
            "auditLogs": [entry.to_dict() for entry in self.audit_logs],
            "ruleErrors": [error.to_dict() for error in self.rule_errors],
            "totalFirings": self.total_firings,
            "firingCapReached": self.firing_cap_reached,
            "executionTimeMs": self.execution_time_ms,
            "errorMessage": self.error_message,
        }


# =============================================================================
# Engine
# =============================================================================


class _Handle:
    """A fact in working memory."""

    __slots__ = ("seq", "fact", "version", "alive")

    def __init__(self, seq: int, fact: Fact):
        self.seq = seq
        self.fact = fact
        self.version = 0
        self.alive = True


class _Run:
    """State of one execution. Never shared between executions."""

    def __init__(
        self,
        rules: list[CompiledRule],
        executor: ActionExecutor,
        sink: SideEffectSink,
        max_firings: int,
        deadline: float | None,
    ):
        self.rules = rules
        self.executor = executor
        self.sink = sink
        self.max_firings = max_firings
        self.deadline = deadline
        self.evaluators = {name: ConditionEvaluator(name) for name in {rule.schema_name for rule in rules}}

        self.positions_by_type: dict[str, list[int]] = {}
        for pos, rule in enumerate(rules):
            self.positions_by_type.setdefault(rule.schema_name, []).append(pos)

        self.handles: list[_Handle] = []
        self.agenda: set[tuple[int, int]] = set()
        self.heap: list[tuple[int, int]] = []
        self.fired_versions: dict[tuple[int, int], int] = {}
        self.no_loop_blocked: set[tuple[int, int]] = set()
        self.locked: set[int] = set()
        self.failed: set[int] = set()
        self.group_winners: dict[str, int] = {}

        self.fired: dict[int, FiredRule] = {}
        self.errors: list[RuleError] = []
        self.total_firings = 0
        self.cap_reached = False
        self.timed_out = False

    # -- working memory -----------------------------------------------------

    def insert(self, fact: Fact) -> None:
        handle = _Handle(len(self.handles), fact)
        self.handles.append(handle)
        self.refresh(handle)

    def refresh(self, handle: _Handle) -> None:
        """Re-evaluate every rule bound to the fact's type."""
        for pos in self.positions_by_type.get(handle.fact.fact_type, ()):
            key = (pos, handle.seq)
            if self._eligible(pos, handle) and self._matches(pos, handle):
                # A fired lock-on-active rule keeps its pending activations but gains no new ones
                if key not in self.agenda and pos not in self.locked:
                    self.agenda.add(key)
                    heapq.heappush(self.heap, key)
            else:
                self.agenda.discard(key)

    def _eligible(self, pos: int, handle: _Handle) -> bool:
        if pos in self.failed:
            return False
        key = (pos, handle.seq)
        if key in self.no_loop_blocked:
            return False
        if self.fired_versions.get(key) == handle.version:
            return False
        group = self.rules[pos].activation_group
        if group is not None and self.group_winners.get(group, pos) != pos:
            return False
        return True

    def _matches(self, pos: int, handle: _Handle) -> bool:
        rule = self.rules[pos]
        try:
            return self.evaluators[rule.schema_name].evaluate(rule.definition.conditions, handle.fact)
        except Exception as exc:
            self._fail(pos, f"evaluation failed: {exc}")
            return False

    def _fail(self, pos: int, message: str) -> None:
        rule = self.rules[pos]
        logger.error("Rule %s (%s) %s", rule.rule_id, rule.name, message)
        self.errors.append(RuleError(rule.rule_id, rule.name, message))
        self.failed.add(pos)
        self._drop(lambda key: key[0] == pos)

    def _drop(self, predicate) -> None:
        self.agenda = {key for key in self.agenda if not predicate(key)}

    # -- agenda loop --------------------------------------------------------

    def run(self) -> None:
        while self.agenda:
            if self.deadline is not None and time.monotonic() >= self.deadline:
                logger.warning("Execution deadline exceeded after %d firings", self.total_firings)
                self.timed_out = True
                return

            key = heapq.heappop(self.heap)
            if key not in self.agenda:
                continue
            self.fire(*key)

            if self.total_firings >= self.max_firings:
                logger.warning("Firing cap of %d reached; stopping execution", self.max_firings)
                self.cap_reached = True
                return

    def fire(self, pos: int, seq: int) -> None:
        rule = self.rules[pos]
        handle = self.handles[seq]
        key = (pos, seq)

        self.agenda.discard(key)
        self.fired_versions[key] = handle.version
        if rule.no_loop:
            self.no_loop_blocked.add(key)
        if rule.lock_on_active:
            self.locked.add(pos)
        if rule.activation_group is not None:
            self.group_winners[rule.activation_group] = pos
            rivals = {
                other for other, candidate in enumerate(self.rules)
                if other != pos and candidate.activation_group == rule.activation_group
            }
            self._drop(lambda k: k[0] in rivals)

        fired = self.fired.setdefault(pos, FiredRule(rule.rule_id, rule.name))
        fired.fire_count += 1
        self.total_firings += 1

        outcome = ActionOutcome()
        try:
            for action in rule.definition.actions:
                self.executor.execute(action, handle.fact, rule.name, self.sink, outcome, rule.schema_name)
        except Exception as exc:
            self._fail(pos, f"action failed: {exc}")

        if outcome.retracted:
            handle.alive = False
            self._drop(lambda k: k[1] == seq)
        elif outcome.modified:
            handle.version += 1
            self.refresh(handle)

        for inserted in outcome.inserted:
            self.insert(inserted)

    def result_facts(self) -> list[dict[str, Any]]:
        return [handle.fact.data for handle in self.handles if handle.alive]


class RuleEngine:
    """Fires compiled rules against batches of facts.

    Args:
        max_firings: total firings allowed per execution
        executor: action executor (webhook client and timeout live there)
    """

    def __init__(self, max_firings: int = DEFAULT_MAX_FIRINGS, executor: ActionExecutor | None = None):
        self.max_firings = max_firings
        self.executor = executor or ActionExecutor()

    def prepare(self, rules: Iterable[CompiledRule], now: datetime | None = None) -> list[CompiledRule]:
        """Active rules in firing order: priority DESC, id ASC."""
        now = now or datetime.now(timezone.utc)
        active = [rule for rule in rules if rule.is_active(now)]
        return sorted(active, key=lambda rule: (-rule.priority, rule.rule_id))

    def execute(
        self,
        rules: Iterable[CompiledRule],
        facts: Sequence[Any],
        fact_type: str,
        *,
        dry_run: bool = False,
        schema: SchemaModel | None = None,
        deadline: float | None = None,
        now: datetime | None = None,
        load_errors: Sequence[RuleError] = (),
    ) -> ExecutionResult:
        """Run one execution.

        Args:
            rules: candidate rules; inactive ones are filtered out here
            facts: raw fact maps, deep-copied before use
            fact_type: type label given to every input fact
            dry_run: record webhooks without sending them
            schema: when given, input facts are type-checked against it
            deadline: ``time.monotonic()`` value after which the loop stops
            now: clock used for the effective-date window
            load_errors: rules that could not be loaded; reported like
                evaluation errors
        """
        started = time.perf_counter()
        sink = SideEffectSink(dry_run=dry_run)

        problems = _fact_problems(facts, schema)
        if problems:
            return ExecutionResult(
                success=False,
                result_facts=[copy.deepcopy(f) for f in facts],
                execution_time_ms=_elapsed_ms(started),
                error_message="; ".join(problems),
            )

        run = _Run(self.prepare(rules, now), self.executor, sink, self.max_firings, deadline)
        run.errors.extend(load_errors)
        for data in facts:
            run.insert(Fact(fact_type, copy.deepcopy(data)))
        run.run()

        error_message = None
        if run.timed_out:
            error_message = DEADLINE_MESSAGE
        elif run.errors:
            error_message = "; ".join(f"Rule {e.rule_id} ({e.rule_name}): {e.message}" for e in run.errors)

        return ExecutionResult(
            success=error_message is None,
            # Working memory is abandoned when the deadline cuts the run short
            result_facts=[] if run.timed_out else run.result_facts(),
            fired_rules=list(run.fired.values()),
            webhook_results=sink.webhook_results,
            audit_logs=sink.audit_logs,
            rule_errors=run.errors,
            total_firings=run.total_firings,
            firing_cap_reached=run.cap_reached,
            execution_time_ms=_elapsed_ms(started),
            error_message=error_message,
        )


def _fact_problems(facts: Sequence[Any], schema: SchemaModel | None) -> list[str]:
    problems = []
    for index, data in enumerate(facts):
        if not isinstance(data, dict):
            problems.append(f"Fact {index} must be an object")
        elif schema is not None:
            problems.extend(f"Fact {index}: {error}" for error in schema.validate_fact(data))
    return problems


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
