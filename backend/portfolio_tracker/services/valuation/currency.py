# backend/portfolio_tracker/services/valuation/currency.py
"""
Currency conversion into the reporting currency.

Rate convention: rates[ccy] is the number of reporting-currency units per
one unit of ccy (USD -> 150 when reporting in JPY), so

    reporting_amount = native_amount × rates[ccy]

A missing rate falls back to 1. The fallback is logged at WARNING and
flagged on the returned RateLookup so callers can surface it.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from decimal import Decimal

from portfolio_tracker.services.valuation.types import RateLookup

logger = logging.getLogger(__name__)

FALLBACK_RATE = Decimal("1")


class CurrencyConverter:
    """
    Converts native-currency amounts with a fixed rate table.

    The table is copied on construction; the converter itself holds no
    other state and is safe to share.
    """

    def __init__(
            self,
            reporting_currency: str = "JPY",
            rates: Mapping[str, Decimal] | None = None,
    ) -> None:
        self.reporting_currency = reporting_currency.upper()
        self._rates = {ccy.upper(): Decimal(rate) for ccy, rate in (rates or {}).items()}

    @property
    def rates(self) -> dict[str, Decimal]:
        return dict(self._rates)

    def lookup(self, currency: str) -> RateLookup:
        """Rate for currency, with is_fallback set when none was available."""
        ccy = currency.upper()
        if ccy == self.reporting_currency:
            return RateLookup(currency=ccy, rate=Decimal("1"))

        rate = self._rates.get(ccy)
        if rate is None or rate <= 0:
            logger.warning(
                f"No {ccy}/{self.reporting_currency} rate available, using {FALLBACK_RATE}"
            )
            return RateLookup(currency=ccy, rate=FALLBACK_RATE, is_fallback=True)

        return RateLookup(currency=ccy, rate=rate)

    def rate(self, currency: str) -> Decimal:
        return self.lookup(currency).rate

    def convert(self, amount: Decimal, currency: str) -> Decimal:
        """Native amount in reporting currency (unrounded)."""
        return amount * self.rate(currency)

    def with_rates(self, rates: Mapping[str, Decimal]) -> CurrencyConverter:
        """New converter with rates merged over this one's."""
        merged = self.rates
        merged.update({ccy.upper(): Decimal(rate) for ccy, rate in rates.items()})
        return CurrencyConverter(self.reporting_currency, merged)
