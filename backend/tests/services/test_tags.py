# backend/tests/services/test_tags.py
"""
Unit tests for TagRegistry and retag_lots.

Test Coverage:
- Stable palette colors
- Add / remove / rename (including merge into an existing tag)
- Name validation
- Retagging lots
"""

import pytest

from portfolio_tracker.services.constants import DEFAULT_TAG_COLOR, TAG_COLORS
from portfolio_tracker.services.exceptions import InvalidInputError, TagNotFoundError
from portfolio_tracker.services.tags import TagRegistry, retag_lots, tag_color
from tests.conftest import make_lot


class TestTagColor:

    def test_color_is_stable_and_from_palette(self):
        assert tag_color("dividend") == tag_color("dividend")
        assert tag_color("dividend") in TAG_COLORS


class TestTagRegistry:

    def test_add_keeps_order(self):
        registry = TagRegistry().add("core").add("growth")

        assert registry.names == ["core", "growth"]
        assert "core" in registry

    def test_add_existing_is_noop(self):
        registry = TagRegistry().add("core", color="#111111")

        assert registry.add("core", color="#222222") is registry
        assert registry.color_of("core") == "#111111"

    def test_add_strips_whitespace(self):
        assert TagRegistry().add("  core ").names == ["core"]

    @pytest.mark.parametrize("name", ["", "   ", "x" * 51])
    def test_invalid_names_are_rejected(self, name):
        with pytest.raises(InvalidInputError):
            TagRegistry().add(name)

    def test_remove(self):
        registry = TagRegistry.from_names(["a", "b"]).remove("a")

        assert registry.names == ["b"]

    def test_remove_unknown(self):
        with pytest.raises(TagNotFoundError):
            TagRegistry().remove("nope")

    def test_rename_keeps_position_and_color(self):
        registry = TagRegistry.from_names(["a", "b", "c"])
        color = registry.color_of("b")

        renamed = registry.rename("b", "bee")

        assert renamed.names == ["a", "bee", "c"]
        assert renamed.color_of("bee") == color

    def test_rename_into_existing_merges(self):
        registry = TagRegistry.from_names(["a", "b"])

        assert registry.rename("a", "b").names == ["b"]

    def test_unknown_tag_gets_default_color(self):
        assert TagRegistry().color_of("nope") == DEFAULT_TAG_COLOR


class TestRetagLots:

    def test_rename_on_lots(self):
        lots = [make_lot(id="1", tags=("old", "keep")), make_lot(id="2", tags=("keep",))]

        result = retag_lots(lots, "old", "new")

        assert result[0].tags == frozenset({"new", "keep"})
        assert result[1] is lots[1]

    def test_remove_from_lots(self):
        lots = [make_lot(id="1", tags=("old",))]

        assert retag_lots(lots, "old")[0].tags == frozenset()
