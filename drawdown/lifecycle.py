"""Asset activation, deposits, income and growth bookkeeping."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Callable, Iterable

from .rates import RateScheduleResolver
from .schema import Asset, DepositEvent, FixedGrowth, GrowthSource, IncomeEvent, ScheduledGrowth

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AssetState:
    name: str
    account_type: str
    balance: float
    min_balance: float = 0.0
    growth: GrowthSource = field(default_factory=lambda: FixedGrowth(0.0))
    compounding: str = "monthly"
    dynamic: bool = False
    activated_at: int | None = None

    @property
    def available(self) -> float:
        return max(0.0, self.balance - self.min_balance)

    @property
    def grows(self) -> bool:
        if isinstance(self.growth, ScheduledGrowth):
            return True
        return self.compounding == "monthly"

    @classmethod
    def from_asset(cls, asset: Asset, activated_at: int | None = None) -> "AssetState":
        return cls(
            name=asset.name,
            account_type=asset.type,
            balance=float(asset.balance),
            min_balance=float(asset.min_balance or 0.0),
            growth=asset.growth,
            compounding=asset.compounding,
            dynamic=asset.dynamic,
            activated_at=activated_at,
        )


def monthly_income(events: Iterable[IncomeEvent], month_number: int) -> float:
    """Total income active in the 1-based ``month_number``."""
    return sum(event.amount for event in events if event.is_active(month_number))


class AssetLedger:
    """Active account balances plus per-month balance history for one run."""

    def __init__(self, assets: list[Asset], trace: Callable[[str], None] | None = None) -> None:
        self._trace = trace or logger.debug
        self.active: dict[str, AssetState] = {}
        self.pending: list[Asset] = []
        self.history: dict[str, list[float]] = {}
        self.months_recorded = 0

        for asset in assets:
            self.history[asset.name] = []
            if asset.is_delayed:
                self.pending.append(asset)
            else:
                self.active[asset.name] = AssetState.from_asset(asset)

    def activate_due(self, month_number: int) -> list[str]:
        """Bring delayed assets whose ``start_month`` equals ``month_number`` online."""
        activated: list[str] = []
        still_pending: list[Asset] = []
        for asset in self.pending:
            if asset.start_month == month_number:
                self.active[asset.name] = AssetState.from_asset(asset, activated_at=month_number)
                activated.append(asset.name)
                self._trace(f"month {month_number}: activated {asset.name} with balance {asset.balance:.2f}")
            else:
                still_pending.append(asset)
        self.pending = still_pending
        return activated

    def apply_deposits(self, deposits: Iterable[DepositEvent], month_index: int) -> None:
        for event in deposits:
            if not event.is_active(month_index):
                continue
            state = self.active.get(event.target)
            if state is None and any(asset.name == event.target for asset in self.pending):
                self._trace(f"month {month_index}: deposit '{event.name}' skipped; {event.target} not active yet")
                continue
            if state is None:
                state = self._create_dynamic(event.target)
            state.balance += event.amount

    def _create_dynamic(self, name: str) -> AssetState:
        state = AssetState(name=name, account_type="taxable", balance=0.0, dynamic=True)
        self.active[name] = state
        if name not in self.history:
            self.history[name] = [0.0] * self.months_recorded
        self._trace(f"created deposit target '{name}' as taxable account")
        return state

    def withdrawable(self, month_number: int) -> dict[str, AssetState]:
        """Assets the allocator may draw from; newly activated ones wait a month."""
        return {name: state for name, state in self.active.items() if state.activated_at != month_number}

    def apply_growth(self, resolver: RateScheduleResolver, month_index: int, month_number: int) -> None:
        for state in self.active.values():
            if state.activated_at == month_number or not state.grows:
                continue
            rate = resolver.growth_rate(state.growth, month_index)
            state.balance += state.balance * rate

    def record_balances(self) -> None:
        for name, series in self.history.items():
            state = self.active.get(name)
            series.append(state.balance if state is not None else 0.0)
        self.months_recorded += 1

    def total_available(self) -> float:
        return sum(state.available for state in self.active.values())

    def csv_asset_names(self) -> list[str]:
        return [
            name
            for name in self.history
            if name not in self.active or not self.active[name].dynamic or self.active[name].balance > 0
        ]
