"""Tests for attribute usage analysis and rule rewriting."""

from ruleengine.impact.analyzer import find_usages, risk_level
from ruleengine.impact.rewriter import delete_in_rule, rename_in_rule, rename_path, uses_attribute
from ruleengine.rules.models import RuleDefinition, walk_conditions

AGE_RULE = {
    "name": "Adults",
    "schemaId": 1,
    "conditions": {
        "operator": "all",
        "conditions": [
            {"fact": "age", "operator": "greaterThan", "value": 18},
            {"fact": "name", "operator": "isNotNull"},
        ],
    },
    "actions": [{"type": "LOG", "targetField": "age", "logMessage": "adult"}],
}


def rule(data=None) -> RuleDefinition:
    return RuleDefinition.model_validate(data or AGE_RULE)


class TestFindUsages:
    def test_condition_and_action(self):
        """Test usages in a condition and an action."""
        usages = find_usages(rule(), "age", "Person")
        assert [(u.location, u.detail) for u in usages] == [
            ("condition", "age greaterThan 18"),
            ("action", "LOG age"),
        ]

    def test_dotted_descendants(self):
        """References to child fields count as usages."""
        definition = rule(
            {
                "name": "r",
                "schemaId": 1,
                "conditions": {"conditions": [{"fact": "address.city", "operator": "equals", "value": "Oslo"}]},
            }
        )
        assert len(find_usages(definition, "address", "Person")) == 1
        assert find_usages(definition, "addr", "Person") == []

    def test_prefixed_and_field_references(self):
        """Test schema-prefixed paths and field-valued conditions."""
        definition = rule(
            {
                "name": "r",
                "schemaId": 1,
                "conditions": {
                    "operator": "any",
                    "conditions": [
                        {"fact": "Person.age", "operator": "equals", "value": 1},
                        {"operator": "all", "conditions": [
                            {"fact": "limit", "operator": "lessThan", "value": "age", "valueIsField": True},
                        ]},
                    ],
                },
            }
        )
        usages = find_usages(definition, "age", "Person")
        assert [u.detail for u in usages] == ["Person.age equals 1", "limit lessThan age"]

    def test_member_of_detail(self):
        """Test the detail text of a list operator."""
        definition = rule(
            {"name": "r", "schemaId": 1, "conditions": {"conditions": [{"fact": "tier", "operator": "memberOf", "value": ["a", "b"]}]}}
        )
        assert find_usages(definition, "tier")[0].detail == "tier memberOf [a, b]"

    def test_unused_attribute(self):
        """Test an attribute no rule references."""
        assert find_usages(rule(), "email", "Person") == []
        assert not uses_attribute(rule(), "email", "Person")


class TestRiskLevel:
    def test_thresholds(self):
        """Test the risk level boundaries."""
        assert [risk_level(n) for n in (0, 1, 2, 3, 5, 6, 40)] == [
            "none", "low", "low", "medium", "medium", "high", "high",
        ]


class TestRename:
    def test_rename_everywhere(self):
        """Test a rename reaches conditions and actions."""
        renamed, changed = rename_in_rule(rule(), "age", "years", "Person")
        assert changed
        data = renamed.to_json()
        assert '"fact": "years"' in data
        assert '"fact": "age"' not in data
        assert renamed.actions[0].target_field == "years"

    def test_input_not_mutated(self):
        """Test the original definition is left alone."""
        original = rule()
        rename_in_rule(original, "age", "years", "Person")
        assert original.conditions.conditions[0].fact == "age"

    def test_rename_keeps_prefix_and_suffix(self):
        """Renames keep the schema prefix and child segments."""
        assert rename_path("Person.address.city", "address", "location", "Person") == "Person.location.city"
        assert rename_path("tags[0]", "tags", "labels") == "labels[0]"

    def test_rename_to_same_name_is_noop(self):
        """Test renaming an attribute to itself."""
        renamed, changed = rename_in_rule(rule(), "age", "age", "Person")
        assert not changed
        assert renamed == rule()

    def test_rename_value_is_field(self):
        """Field-valued conditions and actions are renamed too."""
        definition = rule(
            {
                "name": "r",
                "schemaId": 1,
                "conditions": {"conditions": [{"fact": "limit", "operator": "lessThan", "value": "age", "valueIsField": True}]},
                "actions": [{"type": "MODIFY", "targetField": "limit", "value": "age", "valueIsField": True}],
            }
        )
        renamed, changed = rename_in_rule(definition, "age", "years")
        assert changed
        assert renamed.conditions.conditions[0].value == "years"
        assert renamed.actions[0].value == "years"

    def test_literal_value_not_renamed(self):
        """Literal values that look like the attribute stay as they are."""
        definition = rule(
            {"name": "r", "schemaId": 1, "conditions": {"conditions": [{"fact": "name", "operator": "equals", "value": "age"}]}}
        )
        _, changed = rename_in_rule(definition, "age", "years")
        assert not changed


class TestDelete:
    def test_drops_conditions_and_actions(self):
        """Test deleting removes conditions and actions."""
        pruned, changed = delete_in_rule(rule(), "age", "Person")
        assert changed
        assert [c.fact for c in walk_conditions(pruned.conditions)] == ["name"]
        assert pruned.actions == []
        assert not uses_attribute(pruned, "age", "Person")

    def test_emptied_nested_group_is_removed(self):
        """Nested groups left empty are removed."""
        definition = rule(
            {
                "name": "r",
                "schemaId": 1,
                "conditions": {
                    "operator": "all",
                    "conditions": [
                        {"fact": "name", "operator": "isNotNull"},
                        {"operator": "any", "conditions": [{"fact": "age", "operator": "lessThan", "value": 3}]},
                    ],
                },
            }
        )
        pruned, _ = delete_in_rule(definition, "age")
        assert len(pruned.conditions.conditions) == 1

    def test_unrelated_rule_unchanged(self):
        """Test deleting an attribute the rule never uses."""
        _, changed = delete_in_rule(rule(), "email", "Person")
        assert not changed
