"""Action execution and the per-execution side-effect sink.

Every firing passes an explicit :class:`SideEffectSink`; nothing here keeps
state between executions.
"""

from __future__ import annotations

import copy
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

import requests

from ruleengine.rules.models import (
    Action,
    InsertAction,
    LogAction,
    ModifyAction,
    RetractAction,
    WebhookAction,
)
from .expressions import evaluate_expression
from .fact import Fact
from .paths import normalize_path

logger = logging.getLogger(__name__)

DRY_RUN_RESPONSE = "dry-run skipped"

_PLACEHOLDER = re.compile(r"\{\{\s*([^{}\s]+)\s*\}\}")


@dataclass
class AuditEntry:
    rule_name: str
    fact_type: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"ruleName": self.rule_name, "factType": self.fact_type, "message": self.message}


@dataclass
class WebhookResult:
    url: str
    status_code: int
    response: str
    success: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "statusCode": self.status_code,
            "response": self.response,
            "success": self.success,
        }


@dataclass
class SideEffectSink:
    """Collects LOG and WEBHOOK outcomes for one execution."""

    dry_run: bool = False
    audit_logs: list[AuditEntry] = field(default_factory=list)
    webhook_results: list[WebhookResult] = field(default_factory=list)


@dataclass
class ActionOutcome:
    """What a list of actions did to working memory."""

    modified: bool = False
    retracted: bool = False
    inserted: list[Fact] = field(default_factory=list)


def render_template(template: str, fact: Fact, schema_name: str | None = None) -> str:
    """Replace ``{{path}}`` placeholders with values from the fact."""

    def substitute(match: re.Match) -> str:
        value = fact.get(normalize_path(match.group(1), schema_name))
        if isinstance(value, str):
            return value
        return json.dumps(value)

    return _PLACEHOLDER.sub(substitute, template)


class ActionExecutor:
    """Applies rule actions to facts.

    Args:
        http: object with a ``requests``-compatible ``request`` method
        webhook_timeout: seconds before a webhook call is abandoned
    """

    def __init__(self, http: Any = None, webhook_timeout: float = 30.0):
        self.http = http if http is not None else requests
        self.webhook_timeout = webhook_timeout

    def execute_all(
        self,
        actions: list[Action],
        fact: Fact,
        rule_name: str,
        sink: SideEffectSink,
        schema_name: str | None = None,
    ) -> ActionOutcome:
        """Run actions in list order against one fact."""
        outcome = ActionOutcome()
        for action in actions:
            self.execute(action, fact, rule_name, sink, outcome, schema_name)
        return outcome

    def execute(
        self,
        action: Action,
        fact: Fact,
        rule_name: str,
        sink: SideEffectSink,
        outcome: ActionOutcome,
        schema_name: str | None = None,
    ) -> None:
        if isinstance(action, ModifyAction):
            if self._modify(action, fact, schema_name):
                outcome.modified = True
        elif isinstance(action, InsertAction):
            outcome.inserted.append(Fact(action.fact_type, copy.deepcopy(action.fact_data)))
        elif isinstance(action, RetractAction):
            outcome.retracted = True
        elif isinstance(action, LogAction):
            self._log(action, fact, rule_name, sink, schema_name)
        elif isinstance(action, WebhookAction):
            sink.webhook_results.append(self._webhook(action, fact, sink, schema_name))

    def _modify(self, action: ModifyAction, fact: Fact, schema_name: str | None) -> bool:
        """Returns True when the fact's value actually changed."""
        if action.value_expression:
            value = evaluate_expression(action.value_expression, fact, schema_name)
        elif action.value_is_field and isinstance(action.value, str):
            value = copy.deepcopy(fact.get(normalize_path(action.value, schema_name)))
        else:
            value = copy.deepcopy(action.value)

        path = normalize_path(action.target_field, schema_name)
        previous = fact.get(path)
        if not fact.set(path, value):
            logger.debug("MODIFY of '%s' blocked by a non-object value on %s", path, fact.fact_type)
            return False
        return previous != value or type(previous) is not type(value)

    def _log(
        self, action: LogAction, fact: Fact, rule_name: str, sink: SideEffectSink, schema_name: str | None
    ) -> None:
        message = render_template(action.log_message, fact, schema_name)
        sink.audit_logs.append(AuditEntry(rule_name=rule_name, fact_type=fact.fact_type, message=message))
        logger.info("[RULE LOG] %s | Fact: %s", message, fact.data)

    def _webhook(
        self, action: WebhookAction, fact: Fact, sink: SideEffectSink, schema_name: str | None
    ) -> WebhookResult:
        url = action.webhook_url
        if sink.dry_run:
            return WebhookResult(url=url, status_code=0, response=DRY_RUN_RESPONSE, success=False)

        if action.webhook_body_template:
            body = render_template(action.webhook_body_template, fact, schema_name)
        else:
            body = json.dumps(fact.data)

        headers = dict(action.webhook_headers)
        if not any(name.lower() == "content-type" for name in headers):
            headers["Content-Type"] = "application/json"

        method = (action.webhook_method or "POST").upper()
        try:
            response = self.http.request(
                method,
                url,
                data=body.encode("utf-8"),
                headers=headers,
                timeout=self.webhook_timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Webhook %s %s failed: %s", method, url, exc)
            return WebhookResult(url=url, status_code=0, response=str(exc), success=False)

        status_code = response.status_code
        success = 200 <= status_code < 300
        if not success:
            logger.warning("Webhook %s %s returned HTTP %s", method, url, status_code)
        return WebhookResult(url=url, status_code=status_code, response=response.text, success=success)
