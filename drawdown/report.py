"""CSV export and run metrics."""

from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import date
import io
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .engine import SimulationResult
    from .schema import Scenario

CSV_BASE_COLUMNS = [
    "Month",
    "Date",
    "Income",
    "Expenses",
    "Shortfall",
    "Gross Withdrawals",
    "Net Withdrawals",
    "Taxes Paid",
]


def _money(value: float) -> str:
    return f"{value:.2f}"


def _month_label(start: date, offset: int) -> str:
    index = start.year * 12 + (start.month - 1) + offset
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def build_csv(result: SimulationResult, start_date: date | None = None) -> str:
    """Render the monthly logs and balance history as CSV text.

    ``Date`` is cosmetic: the calendar month ``start_date`` (today by default)
    plus the month offset.
    """
    start = start_date or date.today()
    asset_names = result.csv_assets or list(result.balance_history)

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_BASE_COLUMNS + asset_names)
    for offset, log in enumerate(result.monthly_logs[: result.actual_duration_months]):
        balances = []
        for name in asset_names:
            series = result.balance_history.get(name, [])
            balances.append(_money(series[offset]) if offset < len(series) else "0.00")
        writer.writerow(
            [
                offset + 1,
                _month_label(start, offset),
                _money(log.income),
                _money(log.expenses),
                _money(log.shortfall),
                _money(log.gross_withdrawals),
                _money(log.net_withdrawals),
                _money(log.taxes_paid),
                *balances,
            ]
        )
    return buffer.getvalue().rstrip("\n")


def write_csv(path: str | Path, text: str) -> None:
    Path(path).write_text(text + "\n", encoding="utf-8")


@dataclass(slots=True)
class RunMetrics:
    total_months: int
    total_years: int
    shortfall_months: int
    first_shortfall_month: int | None
    money_runs_out_year: int | None
    stopped_early: bool
    total_gross_withdrawals: float
    total_net_withdrawals: float
    total_taxes: float
    starting_assets: float
    ending_balances: dict[str, float]

    @property
    def ending_total(self) -> float:
        return sum(self.ending_balances.values())


def compute_metrics(result: SimulationResult, scenario: Scenario | None = None) -> RunMetrics:
    logs = result.monthly_logs
    first_shortfall = next((log.month + 1 for log in logs if log.shortfall > 0), None)
    return RunMetrics(
        total_months=len(logs),
        total_years=round(len(logs) / 12),
        shortfall_months=sum(1 for log in logs if log.shortfall > 0),
        first_shortfall_month=first_shortfall,
        money_runs_out_year=round(first_shortfall / 12) if first_shortfall is not None else None,
        stopped_early=result.stopped_early,
        total_gross_withdrawals=sum(log.gross_withdrawals for log in logs),
        total_net_withdrawals=sum(log.net_withdrawals for log in logs),
        total_taxes=sum(log.taxes_paid for log in logs),
        starting_assets=sum(asset.balance for asset in scenario.assets) if scenario is not None else 0.0,
        ending_balances={name: series[-1] if series else 0.0 for name, series in result.balance_history.items()},
    )


def summary_lines(metrics: RunMetrics) -> list[str]:
    lines = [
        f"Months simulated: {metrics.total_months} (~{metrics.total_years} years)",
        f"Stopped early: {'yes' if metrics.stopped_early else 'no'}",
        f"Months with shortfall: {metrics.shortfall_months}",
    ]
    if metrics.first_shortfall_month is not None:
        lines.append(f"First shortfall: month {metrics.first_shortfall_month}")
    if metrics.starting_assets:
        lines.append(f"Starting assets: ${metrics.starting_assets:,.0f}")
    lines.append(f"Gross withdrawals: ${metrics.total_gross_withdrawals:,.0f}")
    lines.append(f"Net withdrawals: ${metrics.total_net_withdrawals:,.0f}")
    lines.append(f"Taxes paid: ${metrics.total_taxes:,.0f}")
    lines.append(f"Ending balance: ${metrics.ending_total:,.0f}")
    return lines
