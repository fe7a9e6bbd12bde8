"""Tests for MODIFY value expressions."""

import pytest

from ruleengine.core.errors import EvaluationError, ValidationError
from ruleengine.runtime.expressions import evaluate_expression, parse_expression, referenced_paths
from ruleengine.runtime.fact import Fact


class TestExpressions:
    def setup_method(self):
        self.fact = Fact("Order", {"total": 10, "rate": 0.5, "customer": {"points": 7}, "items": [{"price": 3}]})

    def test_arithmetic(self):
        """Test the supported arithmetic operators."""
        assert evaluate_expression("total + 1", self.fact) == 11
        assert evaluate_expression("total * rate", self.fact) == 5.0
        assert evaluate_expression("(total - 4) // 4", self.fact) == 1
        assert evaluate_expression("total % 3", self.fact) == 1
        assert evaluate_expression("-total", self.fact) == -10

    def test_dotted_and_indexed_paths(self):
        """Test nested and indexed field references."""
        assert evaluate_expression("customer.points + items[0].price", self.fact) == 10

    def test_schema_prefix(self):
        """Test a schema-prefixed field reference."""
        assert evaluate_expression("Order.total / 4", self.fact, "Order") == 2.5

    def test_referenced_paths(self):
        """Test collecting the fields an expression reads."""
        assert referenced_paths("total + customer.points * items[0].price") == [
            "total",
            "customer.points",
            "items[0].price",
        ]

    @pytest.mark.parametrize(
        "expression",
        ["total ** 2", "__import__('os')", "total if rate else 0", "[1, 2]", "total and rate", "total[rate]"],
    )
    def test_disallowed(self, expression):
        """Test constructs outside plain arithmetic are refused."""
        with pytest.raises(ValidationError):
            parse_expression(expression)

    def test_syntax_error(self):
        """Test an incomplete expression."""
        with pytest.raises(ValidationError):
            parse_expression("total +")

    def test_null_operand(self):
        """Test a missing field as operand."""
        with pytest.raises(EvaluationError):
            evaluate_expression("missing + 1", self.fact)

    def test_division_by_zero(self):
        """Test division by zero."""
        with pytest.raises(EvaluationError):
            evaluate_expression("total / 0", self.fact)

    def test_type_error(self):
        """Test arithmetic on a string field."""
        fact = Fact("Order", {"status": "PENDING"})
        with pytest.raises(EvaluationError):
            evaluate_expression("status - 1", fact)

    def test_string_literal_rejected(self):
        """String literals cannot be used to build values of arbitrary size."""
        with pytest.raises(ValidationError):
            parse_expression("'a' * 50000000")

    def test_boolean_literal_rejected(self):
        """Booleans are not numbers inside expressions."""
        with pytest.raises(ValidationError):
            parse_expression("total + True")

    def test_string_operand_rejected(self):
        """A string fact value is not repeated by multiplication."""
        fact = Fact("Order", {"status": "PENDING"})
        with pytest.raises(EvaluationError, match="is not a number"):
            evaluate_expression("status * 3", fact)

    def test_boolean_operand_rejected(self):
        """A boolean fact value is not treated as 0 or 1."""
        fact = Fact("Order", {"express": True})
        with pytest.raises(EvaluationError):
            evaluate_expression("express + 1", fact)
