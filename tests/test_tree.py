"""
Tests for tree nodes.
"""

from datetime import date, datetime

import pytest

from hotconf import NodeKind, TreeNode, as_tree


class TestTreeConversion:
    """Test conversion between plain data and tree nodes."""

    def test_scalars(self):
        """Test each scalar kind."""
        assert as_tree(None).kind is NodeKind.NULL
        assert as_tree(True).kind is NodeKind.BOOL
        assert as_tree(3).kind is NodeKind.NUMBER
        assert as_tree(2.5).kind is NodeKind.NUMBER
        assert as_tree("x").kind is NodeKind.STRING

    def test_bool_is_not_a_number(self):
        """Test that booleans are not mistaken for numbers."""
        assert as_tree(False) == TreeNode.boolean(False)
        assert as_tree(False) != as_tree(0)

    def test_nested(self):
        """Test nested objects and lists."""
        tree = as_tree({"a": {"b": [1, {"c": "d"}]}})
        assert tree.is_object
        b = tree.get("a").get("b")
        assert b.is_list
        assert len(b) == 2
        assert b.value[1].get("c") == TreeNode.string("d")

    def test_round_trip_to_python(self):
        """Test that to_python gives back the original data."""
        data = {"a": [1, 2, {"b": None}], "c": True}
        assert as_tree(data).to_python() == data

    def test_dates_become_strings(self):
        """Test that YAML-style date values are stored as ISO strings."""
        assert as_tree(date(2024, 1, 15)) == TreeNode.string("2024-01-15")
        assert as_tree(datetime(2024, 1, 15, 10, 30)).value == "2024-01-15T10:30:00"

    def test_non_string_keys(self):
        """Test that object keys are converted to strings."""
        assert as_tree({1: "x"}).keys() == ("1",)

    def test_colliding_keys_are_rejected(self):
        """Test that keys equal after conversion to text do not merge."""
        with pytest.raises(TypeError, match="Duplicate object key '1'"):
            as_tree({1: "int", "1": "text"})

    def test_unsupported_type(self):
        """Test that unknown types are rejected."""
        with pytest.raises(TypeError):
            as_tree(object())


class TestTreeEquality:
    """Test structural equality."""

    def test_object_order_does_not_matter(self):
        """Test that object equality ignores insertion order."""
        assert as_tree({"a": 1, "b": 2}) == as_tree({"b": 2, "a": 1})

    def test_list_order_matters(self):
        """Test that list equality respects order."""
        assert as_tree([1, 2]) != as_tree([2, 1])

    def test_hashable(self):
        """Test that nodes can be used in sets."""
        nodes = {as_tree({"a": [1]}), as_tree({"a": [1]})}
        assert len(nodes) == 1

    def test_object_iteration_is_sorted(self):
        """Test that object values are iterated in field name order."""
        tree = as_tree({"b": 2, "a": 1})
        assert [node.value for node in tree] == [1, 2]
        assert tree.keys() == ("a", "b")
