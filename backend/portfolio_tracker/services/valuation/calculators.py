# backend/portfolio_tracker/services/valuation/calculators.py
"""
Point-in-time valuation of consolidated holdings.

Formulas (reporting currency):
    value       = (current_price or purchase_price) × active_quantity × rate
    cost_basis  = purchase_price (weighted average) × active_quantity × rate
    unrealized  = value - cost_basis

Realized profit from sales is NOT part of unrealized P&L; it lives on
SaleRecord.profit and is summarized by summarize_sales().

Design Principles:
- Stateless apart from the injected CurrencyConverter
- Primitives (value_of, total_value, ...) return unrounded Decimals so
  totals do not compound rounding; result objects are quantized to 0.01
- Missing price/rate and negative active quantities degrade with a
  warning, never an exception

Usage:
    engine = ValuationEngine(CurrencyConverter("JPY", {"USD": Decimal("150")}))
    valuation = engine.value_portfolio(holdings)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from decimal import Decimal

from portfolio_tracker.services.valuation.currency import CurrencyConverter
from portfolio_tracker.services.valuation.types import (
    ZERO,
    ConsolidatedHolding,
    HoldingValuation,
    PortfolioValuation,
    SaleRecord,
    SaleSummary,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class ValuationEngine:
    """Current value, cost basis and unrealized P&L of holdings."""

    def __init__(self, converter: CurrencyConverter | None = None) -> None:
        self.converter = converter or CurrencyConverter()

    @property
    def reporting_currency(self) -> str:
        return self.converter.reporting_currency

    # =========================================================================
    # PRIMITIVES
    # =========================================================================

    def active_quantity(self, holding: ConsolidatedHolding) -> Decimal:
        """Active quantity with negative ledger results treated as zero."""
        if holding.active_quantity < ZERO:
            logger.warning(
                f"Holding {holding.key} has negative active quantity "
                f"{holding.active_quantity}; treating as 0"
            )
            return ZERO
        return holding.active_quantity

    def unit_value(self, holding: ConsolidatedHolding) -> Decimal:
        """One unit at the effective price, in reporting currency."""
        return self.converter.convert(holding.effective_price, holding.currency)

    def value_of(self, holding: ConsolidatedHolding) -> Decimal:
        return self.unit_value(holding) * self.active_quantity(holding)

    def cost_basis_of(self, holding: ConsolidatedHolding) -> Decimal:
        return self.converter.convert(
            holding.purchase_price * self.active_quantity(holding),
            holding.currency,
        )

    def total_value(self, holdings: Iterable[ConsolidatedHolding]) -> Decimal:
        return sum((self.value_of(h) for h in holdings), ZERO)

    def total_profit_loss(self, holdings: Iterable[ConsolidatedHolding]) -> Decimal:
        """Unrealized P&L over holdings with active quantity > 0."""
        total = ZERO
        for holding in holdings:
            if holding.active_quantity <= ZERO:
                continue
            total += self.value_of(holding) - self.cost_basis_of(holding)
        return total

    # =========================================================================
    # RESULT OBJECTS
    # =========================================================================

    def value_holding(self, holding: ConsolidatedHolding) -> HoldingValuation:
        """Full valuation of one holding, with fallback flags and warnings."""
        warnings: list[str] = []

        if holding.active_quantity < ZERO:
            warnings.append(
                f"{holding.name}: sold quantity exceeds purchased quantity "
                f"by {-holding.active_quantity}; valued as 0"
            )
        quantity = self.active_quantity(holding)

        used_purchase_price = not holding.has_current_price
        if used_purchase_price:
            logger.warning(f"No current price for {holding.key}, using purchase price")
            warnings.append(f"{holding.name}: no current price, purchase price used")

        lookup = self.converter.lookup(holding.currency)
        if lookup.is_fallback:
            warnings.append(
                f"{holding.name}: no {lookup.currency} rate, converted at {lookup.rate}"
            )

        value = holding.effective_price * quantity * lookup.rate
        cost = holding.purchase_price * quantity * lookup.rate
        pnl = value - cost

        return HoldingValuation(
            key=holding.key,
            name=holding.name,
            currency=holding.currency,
            active_quantity=quantity,
            price=holding.effective_price,
            rate=lookup.rate,
            value=value.quantize(CENT),
            cost_basis=cost.quantize(CENT),
            unrealized_pnl=pnl.quantize(CENT),
            unrealized_pnl_percent=_percent(pnl, cost),
            used_purchase_price=used_purchase_price,
            used_fallback_rate=lookup.is_fallback,
            warnings=warnings,
        )

    def value_portfolio(self, holdings: Iterable[ConsolidatedHolding]) -> PortfolioValuation:
        """
        Aggregate valuation in reporting currency.

        Holdings with active quantity <= 0 are skipped entirely.
        """
        valuations: list[HoldingValuation] = []
        total_value = ZERO
        total_cost = ZERO

        for holding in holdings:
            if holding.active_quantity <= ZERO:
                continue
            valuation = self.value_holding(holding)
            valuations.append(valuation)
            total_value += self.value_of(holding)
            total_cost += self.cost_basis_of(holding)

        pnl = total_value - total_cost
        warnings = [w for v in valuations for w in v.warnings]

        return PortfolioValuation(
            reporting_currency=self.reporting_currency,
            total_value=total_value.quantize(CENT),
            total_cost_basis=total_cost.quantize(CENT),
            total_unrealized_pnl=pnl.quantize(CENT),
            total_unrealized_pnl_percent=_percent(pnl, total_cost),
            holdings=valuations,
            warnings=warnings,
        )


def summarize_sales(sales: Iterable[SaleRecord]) -> SaleSummary:
    """Realized profit (reporting currency, sale-time rates) and sale count."""
    total = ZERO
    count = 0
    for sale in sales:
        total += sale.profit_reporting
        count += 1
    return SaleSummary(total_profit=total.quantize(CENT), count=count)


def _percent(amount: Decimal, base: Decimal) -> Decimal:
    if base <= ZERO:
        return ZERO.quantize(CENT)
    return (amount / base * 100).quantize(CENT)
