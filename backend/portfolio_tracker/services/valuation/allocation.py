# backend/portfolio_tracker/services/valuation/allocation.py
"""
Portfolio allocation breakdowns (share of total value per group).

Groups: name, asset type, currency, or tag. A holding with several tags
counts toward each of them, so tag percentages can sum past 100; untagged
holdings land in the UNTAGGED bucket. Percentages use the total value of
active holdings as the denominator.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Sequence
from decimal import Decimal

from portfolio_tracker.services.valuation.calculators import CENT, ValuationEngine
from portfolio_tracker.services.valuation.types import (
    ZERO,
    AllocationSlice,
    ConsolidatedHolding,
    PurchaseLot,
)

UNTAGGED = "untagged"


class AllocationGroup(str, enum.Enum):
    NAME = "name"
    TYPE = "type"
    CURRENCY = "currency"
    TAG = "tag"


def _labels(holding: ConsolidatedHolding, group_by: AllocationGroup) -> list[str]:
    if group_by == AllocationGroup.NAME:
        return [holding.name]
    if group_by == AllocationGroup.TYPE:
        return [holding.asset_type.value]
    if group_by == AllocationGroup.CURRENCY:
        return [holding.currency]
    return sorted(holding.tags) or [UNTAGGED]


def allocation_by(
        holdings: Iterable[ConsolidatedHolding],
        engine: ValuationEngine,
        group_by: AllocationGroup,
) -> list[AllocationSlice]:
    """Value and percentage per group, largest first."""
    active = [h for h in holdings if h.active_quantity > ZERO]
    total = engine.total_value(active)

    values: dict[str, Decimal] = {}
    members: dict[str, list[str]] = {}
    for holding in active:
        value = engine.value_of(holding)
        for label in _labels(holding, group_by):
            values[label] = values.get(label, ZERO) + value
            members.setdefault(label, []).append(holding.key)

    slices = [
        AllocationSlice(
            label=label,
            value=value.quantize(CENT),
            percentage=(value / total * 100).quantize(CENT) if total > ZERO else ZERO.quantize(CENT),
            holding_keys=tuple(members[label]),
        )
        for label, value in values.items()
    ]
    slices.sort(key=lambda s: s.value, reverse=True)
    return slices


def holdings_with_tag(
        holdings: Iterable[ConsolidatedHolding],
        tag: str,
) -> list[ConsolidatedHolding]:
    if tag == UNTAGGED:
        return [h for h in holdings if not h.tags]
    return [h for h in holdings if tag in h.tags]


def all_tags(lots: Sequence[PurchaseLot]) -> list[str]:
    """Every tag used by any lot, sorted."""
    return sorted({tag for lot in lots for tag in lot.tags})
