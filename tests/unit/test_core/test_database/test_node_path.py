"""Unit tests for the NodePath value type."""
from __future__ import annotations

import pytest

from reftree.core.database.exceptions import InvalidPathError
from reftree.core.database.hierarchy.path import MAX_COMPONENT, NodePath


class TestConstruction:
    """Tests for building and validating paths."""

    def test_from_list(self):
        """NodePath should accept any iterable of positive ints."""
        path = NodePath([1, 2, 3])

        assert path.components == (1, 2, 3)
        assert path.depth == 3
        assert len(path) == 3

    def test_copy_constructor(self):
        """Wrapping a NodePath should produce an equal path."""
        original = NodePath([4, 5])

        assert NodePath(original) == original

    def test_empty_path_is_falsy(self):
        """The empty path is valid and has depth 0."""
        path = NodePath()

        assert not path
        assert path.depth == 0
        assert path.root is None
        assert path.last is None

    @pytest.mark.parametrize("components", [[0], [1, -2], [1, 2.5], [True], [MAX_COMPONENT + 1]])
    def test_rejects_invalid_components(self, components):
        """Zero, negatives, non-ints, bools and oversized values are rejected."""
        with pytest.raises(InvalidPathError):
            NodePath(components)

    def test_rejects_plain_string(self):
        """Strings must go through parse()."""
        with pytest.raises(InvalidPathError, match="parse"):
            NodePath("1.2")

    def test_invalid_path_error_is_value_error(self):
        """Callers catching ValueError also catch invalid paths."""
        with pytest.raises(ValueError):
            NodePath([0])


class TestParsingAndFormatting:
    """Tests for display and key encodings."""

    def test_parse_default_separator(self):
        assert NodePath.parse("1.1.2.1") == (1, 1, 2, 1)

    def test_parse_custom_separator(self):
        assert NodePath.parse("3/4", "/") == (3, 4)

    def test_parse_empty(self):
        assert NodePath.parse("  ") == NodePath()

    def test_parse_garbage(self):
        """Non-numeric components raise InvalidPathError."""
        with pytest.raises(InvalidPathError):
            NodePath.parse("1.x.3")

    def test_format(self):
        path = NodePath([1, 1, 2, 1])

        assert path.format() == "1.1.2.1"
        assert path.format("-") == "1-1-2-1"
        assert str(path) == "1.1.2.1"
        assert repr(path) == "NodePath(1.1.2.1)"

    def test_sort_key_is_fixed_width(self):
        assert NodePath([1, 12]).sort_key == "00000001.00000012"

    def test_from_key_reverses_sort_key(self):
        path = NodePath([7, 30, 2])

        assert NodePath.from_key(path.sort_key) == path

    def test_sort_key_order_matches_path_order(self):
        """Byte order of keys must agree with path order."""
        paths = [NodePath(p) for p in ([2], [1, 10], [1, 9], [1], [1, 9, 1], [10])]

        assert sorted(paths, key=lambda p: p.sort_key) == sorted(paths)


class TestOrdering:
    """Tests for comparison and hashing."""

    def test_prefix_sorts_before_extension(self):
        assert NodePath([1]) < NodePath([1, 1])
        assert NodePath([1, 1, 3]) < NodePath([2])

    def test_numeric_not_lexicographic(self):
        assert NodePath([9]) < NodePath([10])

    def test_sorted_is_pre_order(self):
        paths = [NodePath(p) for p in ([2, 1], [1, 2], [1], [2], [1, 1, 1], [1, 1])]

        assert [p.format() for p in sorted(paths)] == ["1", "1.1", "1.1.1", "1.2", "2", "2.1"]

    def test_equality_with_sequences(self):
        path = NodePath([1, 2])

        assert path == (1, 2)
        assert path == [1, 2]
        assert path != (1, 3)
        assert path != "1.2"

    def test_hashable(self):
        assert len({NodePath([1, 2]), NodePath((1, 2)), NodePath([2])}) == 2


class TestNavigation:
    """Tests for pure path arithmetic."""

    def test_parent(self):
        assert NodePath([1, 2, 3]).parent == (1, 2)
        assert NodePath([1]).parent is None

    def test_parent_path_never_none(self):
        assert NodePath([1]).parent_path == NodePath()
        assert NodePath([1, 2]).parent_path == (1,)

    def test_ancestors(self):
        assert NodePath([1, 2, 3]).ancestors == [NodePath([1]), NodePath([1, 2])]

    def test_child_and_sibling(self):
        path = NodePath([1, 2])

        assert path.child(4) == (1, 2, 4)
        assert path.sibling(5) == (1, 5)

    def test_with_component(self):
        assert NodePath([1, 2, 3]).with_component(1, 9) == (1, 9, 3)

    def test_prefix(self):
        path = NodePath([1, 2, 3])

        assert path.prefix(2) == (1, 2)
        assert path.prefix(0) == NodePath()
        with pytest.raises(InvalidPathError):
            path.prefix(-1)

    def test_relationships(self):
        path = NodePath([1, 2])

        assert path.is_prefix_of([1, 2])
        assert path.is_ancestor_of([1, 2, 3, 1])
        assert not path.is_ancestor_of([1, 2])
        assert NodePath([1, 2, 3]).is_descendant_of([1])
        assert path.is_sibling_of([1, 7])
        assert not path.is_sibling_of([2, 2])

    def test_common_ancestor(self):
        assert NodePath([1, 2, 3]).common_ancestor([1, 2, 9, 9]) == (1, 2)
        assert NodePath([1]).common_ancestor([2]) is None
