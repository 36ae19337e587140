# backend/portfolio_tracker/services/valuation/comparison.py
"""
Period-over-period change of holdings against daily snapshots.

Periods: day | week | month | year (year-to-date). Window starts are
computed in the reporting time zone (see utils.date_utils).

Algorithm:
    1. "Now":
         any holding's market open -> live revaluation (is_realtime=True)
         all closed / unknown      -> latest snapshot
    2. Nominal comparison snapshot:
         day, realtime   -> latest snapshot
         day, closed     -> predecessor of the latest (the latest itself
                            when it is the only one)
         week/month/year -> earliest snapshot dated >= window start,
                            else the oldest snapshot (shorter window)
    3. Per holding, price movement only:
         unit_change = current_unit_price - comparison_unit_price
         change      = unit_change × current active quantity
         change_%    = unit_change / comparison_unit_price × 100
       Unit prices are in reporting currency (snapshot value / quantity).
       - day, closed: search back up to `lookback` snapshots for the
         nearest value differing from the latest by more than `threshold`;
         the plain predecessor when none does
       - holding bought after the comparison date, or absent from it:
         earliest snapshot on/after the later of its purchase date and the
         comparison date that contains it;
         zero change when there is none
    4. total_change_% = total_change / (current_total - total_change) × 100

No snapshots or no holdings -> ComparisonUnavailable, never a zero result.

Usage:
    engine = PeriodComparisonEngine(valuation_engine)
    result = engine.compare(holdings, snapshots, PeriodType.DAY, market_open={"AAPL": True})
    if not result.is_available:
        ...
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal

from portfolio_tracker.services.valuation.calculators import CENT, ValuationEngine
from portfolio_tracker.services.valuation.types import (
    ZERO,
    ComparisonUnavailable,
    ConsolidatedHolding,
    DailySnapshot,
    HoldingChange,
    PeriodComparison,
    PeriodType,
)
from portfolio_tracker.utils.date_utils import comparison_start_date, reporting_today

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK = 7
DEFAULT_THRESHOLD = Decimal("1")


class PeriodComparisonEngine:
    """
    Computes PeriodComparison results; pure over its explicit inputs.

    Args:
        valuation: Engine used for live values (its converter holds the
                   live rate table)
        lookback: Snapshots searched back in the day-period changed-value search
        threshold: Minimum absolute value difference that counts as a change
    """

    def __init__(
            self,
            valuation: ValuationEngine,
            lookback: int = DEFAULT_LOOKBACK,
            threshold: Decimal = DEFAULT_THRESHOLD,
    ) -> None:
        self.valuation = valuation
        self.lookback = lookback
        self.threshold = Decimal(threshold)

    def compare(
            self,
            holdings: Sequence[ConsolidatedHolding],
            snapshots: Sequence[DailySnapshot],
            period: PeriodType,
            market_open: Mapping[str, bool] | None = None,
            today: date | None = None,
    ) -> PeriodComparison | ComparisonUnavailable:
        """
        Compare now against the period's comparison point.

        Args:
            holdings: Consolidated holdings (active quantity > 0)
            snapshots: Daily snapshots in any order
            period: day | week | month | year
            market_open: Holding key -> market open flag; missing keys are closed
            today: Override for the reporting-zone date (tests)
        """
        if not snapshots:
            return ComparisonUnavailable(reason="No snapshots recorded yet")
        if not holdings:
            return ComparisonUnavailable(reason="Portfolio has no active holdings")

        ordered = sorted(snapshots, key=lambda s: s.snapshot_date)
        market_open = market_open or {}
        today = today or reporting_today()

        is_realtime = any(market_open.get(h.key, False) for h in holdings)
        latest = ordered[-1]
        nominal_index = self._nominal_index(ordered, period, today, is_realtime)
        nominal = ordered[nominal_index]

        logger.debug(
            f"{period.value} comparison: realtime={is_realtime}, "
            f"latest={latest.snapshot_date}, nominal={nominal.snapshot_date}"
        )

        if is_realtime:
            current_total = self.valuation.total_value(holdings)
        else:
            current_total = latest.total_value

        per_holding: dict[str, HoldingChange] = {}
        total_change = ZERO
        for holding in holdings:
            change = self._holding_change(
                holding, ordered, nominal_index, period, is_realtime
            )
            per_holding[holding.key] = change
            total_change += change.change

        prior_total = current_total - total_change
        if prior_total > ZERO:
            total_percent = (total_change / prior_total * 100).quantize(CENT)
        else:
            total_percent = ZERO.quantize(CENT)

        return PeriodComparison(
            period=period,
            total_change=total_change.quantize(CENT),
            total_change_percent=total_percent,
            per_holding=per_holding,
            comparison_date=nominal.snapshot_date,
            is_realtime=is_realtime,
            current_total=current_total.quantize(CENT),
        )

    # =========================================================================
    # SNAPSHOT SELECTION
    # =========================================================================

    def _nominal_index(
            self,
            ordered: Sequence[DailySnapshot],
            period: PeriodType,
            today: date,
            is_realtime: bool,
    ) -> int:
        last = len(ordered) - 1
        if period == PeriodType.DAY:
            if is_realtime:
                return last
            return max(last - 1, 0)

        start = comparison_start_date(period, today)
        for index, snapshot in enumerate(ordered):
            if snapshot.snapshot_date >= start:
                return index
        # window has no snapshot at all: fall back to the oldest
        return 0

    def _changed_value_index(
            self,
            ordered: Sequence[DailySnapshot],
            key: str,
            default_index: int,
    ) -> int:
        """Nearest earlier snapshot whose value for key moved by more than threshold."""
        last = len(ordered) - 1
        latest_entry = ordered[last].entry(key)
        if latest_entry is None:
            return default_index

        stop = max(last - self.lookback, 0)
        for index in range(last - 1, stop - 1, -1):
            entry = ordered[index].entry(key)
            if entry is None:
                continue
            if abs(entry.value - latest_entry.value) > self.threshold:
                return index
        return default_index

    @staticmethod
    def _first_snapshot_holding(
            ordered: Sequence[DailySnapshot],
            key: str,
            since: date,
    ) -> int | None:
        """Earliest snapshot dated >= since that contains key."""
        for index, snapshot in enumerate(ordered):
            if snapshot.snapshot_date >= since and snapshot.entry(key) is not None:
                return index
        return None

    # =========================================================================
    # PER-HOLDING CHANGE
    # =========================================================================

    def _holding_change(
            self,
            holding: ConsolidatedHolding,
            ordered: Sequence[DailySnapshot],
            nominal_index: int,
            period: PeriodType,
            is_realtime: bool,
    ) -> HoldingChange:
        key = holding.key
        latest = ordered[-1]
        quantity = self.valuation.active_quantity(holding)

        if is_realtime or latest.entry(key) is None:
            current_unit = self.valuation.unit_value(holding)
        else:
            current_unit = latest.entry(key).unit_price

        base_index: int | None = nominal_index
        if period == PeriodType.DAY and not is_realtime:
            base_index = self._changed_value_index(ordered, key, nominal_index)

        base = ordered[base_index]
        if holding.purchase_date > base.snapshot_date or base.entry(key) is None:
            since = max(holding.purchase_date, base.snapshot_date)
            base_index = self._first_snapshot_holding(ordered, key, since)

        if base_index is None:
            logger.debug(f"No snapshot holds {key} yet; reporting zero change")
            return HoldingChange(
                key=key,
                change=ZERO.quantize(CENT),
                change_percent=ZERO.quantize(CENT),
                current_unit_price=current_unit,
            )

        base = ordered[base_index]
        base_unit = base.entry(key).unit_price
        if base_unit is None or current_unit is None:
            return HoldingChange(
                key=key,
                change=ZERO.quantize(CENT),
                change_percent=ZERO.quantize(CENT),
                comparison_date=base.snapshot_date,
                current_unit_price=current_unit,
                comparison_unit_price=base_unit,
            )

        unit_change = current_unit - base_unit
        change = unit_change * quantity
        if base_unit == ZERO:
            percent = ZERO
        else:
            percent = unit_change / base_unit * 100

        return HoldingChange(
            key=key,
            change=change.quantize(CENT),
            change_percent=percent.quantize(CENT),
            comparison_date=base.snapshot_date,
            current_unit_price=current_unit,
            comparison_unit_price=base_unit,
        )
