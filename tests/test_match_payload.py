"""Tests for match-payload synthesis and rule rendering."""

from ruleengine.rules.match_payload import STRING_DEFAULT, generate_match_payload
from ruleengine.rules.models import RuleDefinition
from ruleengine.rules.render import render_rule
from ruleengine.runtime.evaluator import ConditionEvaluator
from ruleengine.runtime.fact import Fact


def definition(operator="all", *conditions, **extra) -> RuleDefinition:
    return RuleDefinition.model_validate(
        {"name": "r", "schemaId": 1, "conditions": {"operator": operator, "conditions": list(conditions)}, **extra}
    )


def assert_matches(rule, payload):
    assert ConditionEvaluator("Order").evaluate(rule.conditions, Fact("Order", payload))


class TestMatchPayload:
    def test_payload_satisfies_conditions(self, order_schema):
        """The generated payload passes every condition of the rule."""
        rule = definition(
            "all",
            {"fact": "status", "operator": "equals", "value": "PENDING"},
            {"fact": "total", "operator": "greaterThan", "value": 100},
            {"fact": "quantity", "operator": "lessThan", "value": 5},
            {"fact": "customer.name", "operator": "startsWith", "value": "Dr"},
            {"fact": "customer.email", "operator": "endsWith", "value": "@example.com"},
            {"fact": "customer.tier", "operator": "memberOf", "value": ["gold", "silver"]},
            {"fact": "tags", "operator": "contains", "value": "gift"},
            {"fact": "orderDate", "operator": "after", "value": "2024-01-01"},
            {"fact": "express", "operator": "isNotNull"},
        )
        payload = generate_match_payload(rule, order_schema)
        assert payload["total"] == 101
        assert payload["customer"]["name"] == "Dr_x"
        assert payload["tags"] == ["gift"]
        assert payload["orderDate"] == "2024-01-02"
        assert payload["express"] is True
        assert_matches(rule, payload)

    def test_is_null_leaves_field_unset(self, order_schema):
        """Test isNull conditions leave the field out."""
        rule = definition("all", {"fact": "customer.email", "operator": "isNull"})
        assert generate_match_payload(rule, order_schema) == {}

    def test_any_group_satisfies_first_child(self, order_schema):
        """Test an any group is satisfied through its first child."""
        rule = definition(
            "any",
            {"fact": "status", "operator": "equals", "value": "SHIPPED"},
            {"fact": "total", "operator": "greaterThan", "value": 5},
        )
        assert generate_match_payload(rule, order_schema) == {"status": "SHIPPED"}

    def test_not_member_of(self, order_schema):
        """Test notMemberOf picks a value outside the list."""
        rule = definition("all", {"fact": "customer.tier", "operator": "notMemberOf", "value": [STRING_DEFAULT]})
        payload = generate_match_payload(rule, order_schema)
        assert_matches(rule, payload)

    def test_value_is_field(self, order_schema):
        """Test field-valued conditions set both fields."""
        rule = definition("all", {"fact": "total", "operator": "greaterThan", "value": "discount", "valueIsField": True})
        payload = generate_match_payload(rule, order_schema)
        assert payload == {"discount": 100, "total": 101}


class TestRenderRule:
    def test_render(self):
        """Test DRL rendering of a rule."""
        rule = definition(
            "all",
            {"fact": "status", "operator": "equals", "value": "PENDING"},
            {"operator": "any", "conditions": [
                {"fact": "total", "operator": "greaterThan", "value": 100},
                {"fact": "customer.email", "operator": "isNull"},
            ]},
            name="Flag big orders",
            priority=10,
            activationGroup="flags",
            actions=[{"type": "MODIFY", "targetField": "express", "value": True}, {"type": "RETRACT"}],
        )
        text = render_rule(rule, "Order")
        assert text.startswith('rule "Flag big orders"\n')
        assert "    salience 10\n" in text
        assert "    no-loop true\n" in text
        assert '    activation-group "flags"\n' in text
        assert '$fact : Order(status equals "PENDING", (total greaterThan 100 || customer.email isNull))' in text
        assert "modify($fact) { express = true };" in text
        assert "retract($fact);" in text
        assert text.endswith("end\n")
