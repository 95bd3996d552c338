"""Core month-by-month deterministic simulation engine."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import date
import logging
from typing import Any, Callable

from .lifecycle import AssetLedger, monthly_income
from .rates import RateScheduleResolver
from .report import build_csv
from .schema import Scenario
from .tax import TaxCalculator
from .withdrawals import EPSILON, MAX_PASSES, Withdrawal, cover_shortfall

logger = logging.getLogger(__name__)

# Tunable: stop only when the unmet need clearly outstrips what is left.
AUTO_STOP_SLACK = 1.5
AUTO_STOP_MIN_RESERVE = 1.0


@dataclass(slots=True)
class MonthLog:
    month: int
    income: float
    expenses: float
    withdrawals: list[Withdrawal] = field(default_factory=list)
    shortfall: float = 0.0

    @property
    def gross_withdrawals(self) -> float:
        return sum(w.gross_amount for w in self.withdrawals)

    @property
    def net_withdrawals(self) -> float:
        return sum(w.net_amount for w in self.withdrawals)

    @property
    def taxes_paid(self) -> float:
        return sum(w.tax_owed for w in self.withdrawals)


@dataclass(slots=True)
class SimulationResult:
    monthly_logs: list[MonthLog]
    balance_history: dict[str, list[float]]
    actual_duration_months: int
    csv_text: str
    stopped_early: bool = False
    windfall_used_at_month: int | None = None
    csv_assets: list[str] = field(default_factory=list)


def _should_auto_stop(remaining: float, total_available: float) -> bool:
    if remaining <= EPSILON:
        return False
    return total_available < AUTO_STOP_MIN_RESERVE or remaining > AUTO_STOP_SLACK * total_available


def _coerce_scenario(scenario: Scenario | dict[str, Any]) -> Scenario:
    if isinstance(scenario, Scenario):
        return copy.deepcopy(scenario)
    return Scenario.from_dict(copy.deepcopy(scenario))


def simulate(
    scenario: Scenario | dict[str, Any],
    *,
    trace: Callable[[str], None] | None = None,
    start_date: date | None = None,
) -> SimulationResult:
    """Run one deterministic projection of ``scenario``.

    The input is deep-copied and never mutated. Each month activates delayed
    assets, applies deposits, funds the inflation-adjusted shortfall from the
    withdrawal order, grows balances, records the month and then checks the
    auto-stop rule. The run ends after ``duration_months`` or as soon as
    auto-stop fires.
    """
    trace = trace or logger.debug
    scenario = _coerce_scenario(scenario)
    plan = scenario.plan

    resolver = RateScheduleResolver(scenario.rate_schedules, trace=trace)
    taxes = TaxCalculator(plan.tax_config)
    ledger = AssetLedger(scenario.assets, trace=trace)
    order = scenario.withdrawal_order()

    logs: list[MonthLog] = []
    actual_duration = plan.duration_months
    stopped = False
    windfall_month: int | None = None

    for month in range(plan.duration_months):
        month_number = month + 1

        # Step 1-2: lifecycle.
        ledger.activate_due(month_number)
        ledger.apply_deposits(scenario.deposits, month)

        # Step 3: cash need.
        income = monthly_income(scenario.income, month_number)
        expenses = resolver.inflated_expenses(plan, month)
        shortfall = expenses - income

        # Step 4: withdrawals.
        remaining = 0.0
        withdrawals: list[Withdrawal] = []
        if shortfall > 0:
            remaining, withdrawals = cover_shortfall(
                shortfall=shortfall,
                order=order,
                assets=ledger.withdrawable(month_number),
                taxes=taxes,
                max_passes=MAX_PASSES,
                trace=trace,
            )

        if windfall_month is None and any(
            ledger.active[w.from_asset].dynamic and w.gross_amount > 0 for w in withdrawals
        ):
            windfall_month = month

        # Step 5: growth.
        ledger.apply_growth(resolver, month, month_number)

        # Step 6: record.
        logs.append(
            MonthLog(
                month=month,
                income=income,
                expenses=expenses,
                withdrawals=withdrawals,
                shortfall=remaining if remaining > EPSILON else 0.0,
            )
        )
        ledger.record_balances()

        # Step 7: auto-stop.
        if plan.stop_on_shortfall and not stopped and month >= plan.min_duration:
            total_available = ledger.total_available()
            if _should_auto_stop(remaining, total_available):
                stopped = True
                actual_duration = month_number
                trace(
                    f"auto-stop at month {month_number}: shortfall {remaining:.2f}, "
                    f"available {total_available:.2f}"
                )
                break

    result = SimulationResult(
        monthly_logs=logs,
        balance_history=ledger.history,
        actual_duration_months=actual_duration,
        csv_text="",
        stopped_early=stopped,
        windfall_used_at_month=windfall_month,
        csv_assets=ledger.csv_asset_names(),
    )
    result.csv_text = build_csv(result, start_date=start_date)
    return result
