"""Tests for fact path access and path normalization."""

from ruleengine.runtime.fact import Fact, split_path
from ruleengine.runtime.paths import normalize_path, path_prefix, references


class TestSplitPath:
    def test_plain_keys(self):
        """Test splitting dotted keys."""
        assert split_path("customer.name") == [("customer", []), ("name", [])]

    def test_indices(self):
        """Test splitting keys with list indices."""
        assert split_path("items[0].tags[1][2]") == [("items", [0]), ("tags", [1, 2])]


class TestFactGet:
    def test_nested_map(self):
        """Test reading a nested value."""
        fact = Fact("Order", {"customer": {"name": "Ada"}})
        assert fact.get("customer.name") == "Ada"

    def test_list_index(self):
        """Test reading through a list index."""
        fact = Fact("Order", {"items": [{"price": 5}, {"price": 7}]})
        assert fact.get("items[1].price") == 7

    def test_index_out_of_range_is_none(self):
        """Test an index past the end of a list."""
        fact = Fact("Order", {"items": [{"price": 5}]})
        assert fact.get("items[3].price") is None

    def test_missing_segment_is_none(self):
        """Missing or null segments read as None."""
        fact = Fact("Order", {"customer": None})
        assert fact.get("customer.name") is None
        assert fact.get("nothing.here") is None

    def test_scalar_in_the_middle_is_none(self):
        """Test a path that runs through a scalar."""
        fact = Fact("Order", {"status": "PENDING"})
        assert fact.get("status.code") is None

    def test_has_value(self):
        """Test has_value on present and missing fields."""
        fact = Fact("Order", {"total": 0})
        assert fact.has_value("total")
        assert not fact.has_value("discount")


class TestFactSet:
    def test_creates_intermediate_maps(self):
        """Test set creates missing maps along the path."""
        fact = Fact("Order", {})
        assert fact.set("customer.address.city", "Paris")
        assert fact.data == {"customer": {"address": {"city": "Paris"}}}

    def test_overwrites_value(self):
        """Test overwriting an existing value."""
        fact = Fact("Order", {"total": 42.5})
        assert fact.set("total", 0)
        assert fact.get("total") == 0

    def test_sets_list_element(self):
        """Test setting a field inside a list element."""
        fact = Fact("Order", {"items": [{"price": 1}]})
        assert fact.set("items[0].price", 9)
        assert fact.data["items"][0]["price"] == 9

    def test_blocked_by_scalar_is_noop(self):
        """A scalar in the way aborts the write."""
        fact = Fact("Order", {"status": "PENDING"})
        assert fact.set("status.code", 1) is False
        assert fact.data == {"status": "PENDING"}

    def test_cannot_create_missing_list(self):
        """Lists are never created by set."""
        fact = Fact("Order", {})
        assert fact.set("items[0].price", 1) is False
        assert fact.data == {}

    def test_copy_is_deep(self):
        """Test copies share no nested state."""
        fact = Fact("Order", {"customer": {"name": "Ada"}})
        clone = fact.copy()
        clone.set("customer.name", "Grace")
        assert fact.get("customer.name") == "Ada"
        assert clone != fact


class TestPaths:
    def test_strips_schema_name(self):
        """Test the schema name prefix is removed case-insensitively."""
        assert normalize_path("order.total", "Order") == "total"

    def test_strips_capitalized_segment(self):
        """A capitalized first segment is treated as a type prefix."""
        assert normalize_path("Invoice.total", "Order") == "total"

    def test_keeps_lowercase_first_segment(self):
        """Test lowercase first segments are kept."""
        assert normalize_path("customer.name", "Order") == "customer.name"

    def test_single_segment_untouched(self):
        """Test a single segment is never stripped."""
        assert normalize_path("Order", "Order") == "Order"

    def test_prefix(self):
        """Test extracting the type prefix."""
        assert path_prefix("Order.customer.name", "Order") == "Order."
        assert path_prefix("customer.name", "Order") == ""

    def test_references(self):
        """Test matching paths against an attribute and its children."""
        assert references("age", "age")
        assert references("customer.name", "customer")
        assert references("tags[0]", "tags")
        assert not references("ages", "age")

    def test_prefixed_path_reads_the_same(self):
        """Prefixed and bare paths read the same value."""
        fact = Fact("Order", {"customer": {"name": "Ada"}})
        assert fact.get(normalize_path("Order.customer.name", "Order")) == fact.get("customer.name")
