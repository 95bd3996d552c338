"""Semantic and cross-reference validation for scenarios."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .schema import ACCOUNT_TYPES, Scenario, ScheduledGrowth


@dataclass(slots=True)
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _check_range(result: ValidationResult, path: str, start: int | None, stop: int | None) -> None:
    if start is None or stop is None:
        return
    if start > stop:
        result.errors.append(f"{path}: start_month must be <= stop_month")


def validate_tax_config(rates: dict[str, float], allowed: Iterable[str] = ACCOUNT_TYPES) -> list[str]:
    allowed_set = set(allowed)
    errors: list[str] = []
    for account_type, rate in rates.items():
        if account_type not in allowed_set:
            expected = ", ".join(sorted(allowed_set))
            errors.append(f"plan.tax_config.{account_type}: unknown account type; expected one of [{expected}]")
        if not 0.0 <= rate < 1.0:
            errors.append(f"plan.tax_config.{account_type}: rate {rate} must be in [0, 1)")
    return errors


def validate_scenario(scenario: Scenario) -> ValidationResult:
    result = ValidationResult()
    plan = scenario.plan

    if plan.monthly_expenses <= 0:
        result.errors.append("plan.monthly_expenses: must be greater than 0")
    if plan.duration_months <= 0:
        result.errors.append("plan.duration_months: must be greater than 0")
    if plan.min_duration < 0:
        result.errors.append("plan.min_duration: must be >= 0")
    if plan.inflation_schedule is not None and plan.inflation_schedule not in scenario.rate_schedules:
        result.warnings.append(
            f"plan.inflation_schedule: '{plan.inflation_schedule}' is not defined; inflation will be 0"
        )
    result.errors.extend(validate_tax_config(plan.tax_config.rates))

    if not scenario.assets:
        result.warnings.append("assets: no assets defined; every shortfall will go unmet")

    names: set[str] = set()
    for idx, asset in enumerate(scenario.assets):
        base = f"assets[{idx}]"
        if asset.name in names:
            result.errors.append(f"{base}.name: duplicate asset name '{asset.name}'")
        names.add(asset.name)

        if asset.type not in ACCOUNT_TYPES:
            expected = ", ".join(ACCOUNT_TYPES)
            result.warnings.append(f"{base}.type: '{asset.type}' is not one of [{expected}]; it will be taxed at 0")
        if asset.balance < 0:
            result.errors.append(f"{base}.balance: cannot be negative")
        if asset.min_balance < 0:
            result.errors.append(f"{base}.min_balance: cannot be negative")
        elif asset.min_balance > asset.balance:
            result.errors.append(
                f"{base}.min_balance: {asset.min_balance:,.2f} exceeds balance {asset.balance:,.2f}"
            )
        if isinstance(asset.growth, ScheduledGrowth) and asset.growth.schedule not in scenario.rate_schedules:
            result.warnings.append(
                f"{base}.return_schedule: '{asset.growth.schedule}' is not defined; growth will be 0"
            )
        if asset.compounding != "monthly":
            result.warnings.append(f"{base}.compounding: only 'monthly' is supported")
        if asset.start_month is not None and asset.start_month > plan.duration_months:
            result.warnings.append(f"{base}.start_month: asset activates after the plan ends")

    for idx, entry in enumerate(scenario.order or []):
        base = f"order[{idx}]"
        if entry.account not in names:
            result.warnings.append(f"{base}.account: '{entry.account}' does not match any asset name; entry skipped")
        if entry.weight is not None and entry.weight < 0:
            result.errors.append(f"{base}.weight: cannot be negative")

    for idx, event in enumerate(scenario.income):
        _check_range(result, f"income[{idx}]", event.start_month, event.stop_month)

    delayed_starts = {asset.name: asset.start_month for asset in scenario.assets if asset.is_delayed}
    for idx, event in enumerate(scenario.deposits):
        base = f"deposits[{idx}]"
        _check_range(result, base, event.start_month, event.stop_month)
        if event.start_month is None or event.stop_month is None:
            result.warnings.append(f"{base}: start_month and stop_month are both required for the deposit to apply")
        if event.target not in names:
            result.warnings.append(f"{base}.target: '{event.target}' will be created as a taxable account")
        delayed = delayed_starts.get(event.target)
        if delayed is not None and event.start_month is not None and event.start_month < delayed - 1:
            result.warnings.append(
                f"{base}: months before '{event.target}' activates (month {delayed}) are skipped; those deposits are lost"
            )

    total_assets = sum(max(0.0, asset.balance) for asset in scenario.assets)
    annual_expenses = plan.monthly_expenses * 12
    if total_assets > 0 and annual_expenses > 0 and total_assets < annual_expenses:
        result.warnings.append("assets: total balance covers less than one year of expenses")

    return result
