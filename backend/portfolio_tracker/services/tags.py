# backend/portfolio_tracker/services/tags.py
"""
Tag registry.

An explicit, immutable value: every edit returns a new TagRegistry and the
caller stores it. There is no process-wide tag list.

Colors are either set explicitly when a tag is added or derived from a
stable hash of the name, so the same tag always renders in the same color
across processes and restarts.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from dataclasses import dataclass, replace

from portfolio_tracker.services.constants import DEFAULT_TAG_COLOR, MAX_TAG_LENGTH, TAG_COLORS
from portfolio_tracker.services.exceptions import InvalidInputError, TagNotFoundError
from portfolio_tracker.services.valuation.types import PurchaseLot


def tag_color(name: str) -> str:
    """Palette color for a tag name (stable across runs)."""
    digest = hashlib.sha1(name.encode("utf-8")).digest()
    return TAG_COLORS[int.from_bytes(digest[:4], "big") % len(TAG_COLORS)]


@dataclass(frozen=True)
class Tag:
    name: str
    color: str


@dataclass(frozen=True)
class TagRegistry:
    """Ordered set of known tags with their colors."""

    tags: tuple[Tag, ...] = ()

    @classmethod
    def from_names(cls, names: Iterable[str]) -> TagRegistry:
        registry = cls()
        for name in names:
            registry = registry.add(name)
        return registry

    @property
    def names(self) -> list[str]:
        return [t.name for t in self.tags]

    def __contains__(self, name: object) -> bool:
        return any(t.name == name for t in self.tags)

    def get(self, name: str) -> Tag | None:
        for tag in self.tags:
            if tag.name == name:
                return tag
        return None

    def color_of(self, name: str) -> str:
        tag = self.get(name)
        return tag.color if tag else DEFAULT_TAG_COLOR

    def add(self, name: str, color: str | None = None) -> TagRegistry:
        """Registry with name added; unchanged if it already exists."""
        name = _clean(name)
        if name in self:
            return self
        return TagRegistry(self.tags + (Tag(name=name, color=color or tag_color(name)),))

    def remove(self, name: str) -> TagRegistry:
        if name not in self:
            raise TagNotFoundError(name)
        return TagRegistry(tuple(t for t in self.tags if t.name != name))

    def rename(self, old: str, new: str) -> TagRegistry:
        """Rename keeping position and color; merges into new if it exists."""
        if old not in self:
            raise TagNotFoundError(old)
        new = _clean(new)
        if new == old:
            return self
        if new in self:
            return self.remove(old)
        return TagRegistry(
            tuple(replace(t, name=new) if t.name == old else t for t in self.tags)
        )


def retag_lots(
        lots: Iterable[PurchaseLot],
        old: str,
        new: str | None = None,
) -> list[PurchaseLot]:
    """
    Lots with tag `old` replaced by `new`, or dropped when new is None.

    Lots without the tag are returned unchanged (same objects).
    """
    result = []
    for lot in lots:
        if old not in lot.tags:
            result.append(lot)
            continue
        tags = set(lot.tags)
        tags.discard(old)
        if new:
            tags.add(new)
        result.append(replace(lot, tags=frozenset(tags)))
    return result


def _clean(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise InvalidInputError("Tag name must not be empty", field="name")
    if len(name) > MAX_TAG_LENGTH:
        raise InvalidInputError(
            f"Tag name longer than {MAX_TAG_LENGTH} characters", field="name"
        )
    return name
