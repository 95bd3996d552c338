"""Flat-rate withdrawal tax helpers by account type."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Iterable

from .schema import DEFAULT_TAX_RATES, TaxConfig


@dataclass(slots=True, frozen=True)
class TaxResult:
    gross: float
    net: float
    tax: float
    rate: float
    account_type: str


class TaxCalculator:
    """Convert between net spending needs and gross account withdrawals.

    Rates are expected in [0, 1) but are not checked here; see
    ``validate.validate_tax_config``. A rate of 1 or more yields inf/NaN or
    negative amounts.
    """

    def __init__(self, tax_config: TaxConfig | dict[str, float] | None = None) -> None:
        rates = dict(DEFAULT_TAX_RATES)
        if isinstance(tax_config, TaxConfig):
            rates.update(tax_config.rates)
        elif tax_config:
            rates.update(tax_config)
        self._rates = rates

    def rate_for(self, account_type: str) -> float:
        return self._rates.get(account_type) or 0.0

    def gross_up(self, net_needed: float, account_type: str) -> TaxResult:
        """Gross withdrawal needed to leave ``net_needed`` after tax."""
        rate = self.rate_for(account_type)
        if rate == 0:
            return TaxResult(gross=net_needed, net=net_needed, tax=0.0, rate=0.0, account_type=account_type)
        if rate == 1.0:
            # Degenerate config: nothing survives tax, so no finite gross suffices.
            gross = math.copysign(math.inf, net_needed) if net_needed else math.nan
        else:
            gross = net_needed / (1.0 - rate)
        return TaxResult(gross=gross, net=net_needed, tax=gross - net_needed, rate=rate, account_type=account_type)

    def tax_on_gross(self, gross: float, account_type: str) -> TaxResult:
        """Tax and net proceeds for a gross withdrawal already decided."""
        rate = self.rate_for(account_type)
        tax = gross * rate
        return TaxResult(gross=gross, net=gross - tax, tax=tax, rate=rate, account_type=account_type)

    def blended_rate(self, withdrawals: Iterable[tuple[float, str]]) -> float:
        total_amount = 0.0
        total_tax = 0.0
        for amount, account_type in withdrawals:
            total_amount += amount
            total_tax += self.tax_on_gross(amount, account_type).tax
        return total_tax / total_amount if total_amount > 0 else 0.0
