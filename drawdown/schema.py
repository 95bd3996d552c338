"""Scenario schema dataclasses and JSON loading."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from pathlib import Path
from typing import Any, Union

ACCOUNT_TYPES = ("tax_deferred", "taxable", "tax_free")

DEFAULT_TAX_RATES = {
    "tax_deferred": 0.22,
    "taxable": 0.15,
    "tax_free": 0.0,
}

DEFAULT_MIN_DURATION = 12
DEFAULT_MAP_BASE_YEAR = 2025


class SchemaError(ValueError):
    """Raised when raw JSON cannot be parsed into schema objects."""


def _expect_dict(value: Any, path: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise SchemaError(f"{path}: expected object")
    return value


def _expect_list(value: Any, path: str) -> list[Any]:
    if not isinstance(value, list):
        raise SchemaError(f"{path}: expected array")
    return value


def _expect_number(value: Any, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SchemaError(f"{path}: expected number")
    return float(value)


def _require(data: dict[str, Any], key: str, path: str) -> Any:
    if key not in data or data[key] is None:
        raise SchemaError(f"{path}.{key}: missing required field")
    return data[key]


def _optional(data: dict[str, Any], key: str, default: Any = None) -> Any:
    value = data.get(key, default)
    return default if value is None else value


def _optional_number(data: dict[str, Any], key: str, path: str, default: float | None = None) -> float | None:
    value = data.get(key)
    if value is None:
        return default
    return _expect_number(value, f"{path}.{key}")


def _optional_int(data: dict[str, Any], key: str, path: str) -> int | None:
    value = _optional_number(data, key, path)
    return int(value) if value is not None else None


# -- rate schedules ---------------------------------------------------------


@dataclass(slots=True, frozen=True)
class FixedSchedule:
    rate: float


@dataclass(slots=True, frozen=True)
class SequenceSchedule:
    values: list[float]
    start_year: int = 0
    default_rate: float | None = None


@dataclass(slots=True, frozen=True)
class RatePeriod:
    start_year: int
    stop_year: int
    rate: float


@dataclass(slots=True, frozen=True)
class MapSchedule:
    periods: list[RatePeriod]
    default_rate: float = 0.0
    base_year: int = DEFAULT_MAP_BASE_YEAR


@dataclass(slots=True, frozen=True)
class PipelineStep:
    operation: str
    params: Any


@dataclass(slots=True, frozen=True)
class PipelineSchedule:
    steps: list[PipelineStep]


RateSchedule = Union[FixedSchedule, SequenceSchedule, MapSchedule, PipelineSchedule]


def _parse_pipeline_step(raw: Any, path: str) -> PipelineStep:
    step = _expect_dict(raw, path)
    if len(step) != 1:
        raise SchemaError(f"{path}: expected a single operation per step")
    operation, params = next(iter(step.items()))
    return PipelineStep(operation=operation, params=params)


def parse_rate_schedule(data: dict[str, Any], path: str) -> RateSchedule:
    kind = data.get("type")
    if kind == "fixed":
        return FixedSchedule(rate=_expect_number(_require(data, "rate", path), f"{path}.rate"))
    if kind == "sequence":
        values = [
            _expect_number(value, f"{path}.values[{idx}]")
            for idx, value in enumerate(_expect_list(_require(data, "values", path), f"{path}.values"))
        ]
        return SequenceSchedule(
            values=values,
            start_year=int(_optional_number(data, "start_year", path, 0.0)),
            default_rate=_optional_number(data, "default_rate", path),
        )
    if kind == "map":
        periods: list[RatePeriod] = []
        for idx, item in enumerate(_expect_list(_require(data, "periods", path), f"{path}.periods")):
            item_path = f"{path}.periods[{idx}]"
            period = _expect_dict(item, item_path)
            periods.append(
                RatePeriod(
                    start_year=int(_expect_number(_require(period, "start_year", item_path), f"{item_path}.start_year")),
                    stop_year=int(_expect_number(_require(period, "stop_year", item_path), f"{item_path}.stop_year")),
                    rate=_expect_number(_require(period, "rate", item_path), f"{item_path}.rate"),
                )
            )
        return MapSchedule(
            periods=periods,
            default_rate=_optional_number(data, "default_rate", path, 0.0),
            base_year=int(_optional_number(data, "base_year", path, float(DEFAULT_MAP_BASE_YEAR))),
        )
    if kind is None and "pipeline" in data:
        steps = [
            _parse_pipeline_step(item, f"{path}.pipeline[{idx}]")
            for idx, item in enumerate(_expect_list(data["pipeline"], f"{path}.pipeline"))
        ]
        return PipelineSchedule(steps=steps)
    if kind is None:
        raise SchemaError(f"{path}: expected 'type' or 'pipeline'")
    raise SchemaError(f"{path}.type: unknown rate schedule type '{kind}'")


# -- growth sources ---------------------------------------------------------


@dataclass(slots=True, frozen=True)
class FixedGrowth:
    rate: float


@dataclass(slots=True, frozen=True)
class ScheduledGrowth:
    schedule: str


GrowthSource = Union[FixedGrowth, ScheduledGrowth]


# -- scenario ---------------------------------------------------------------


@dataclass(slots=True)
class TaxConfig:
    rates: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_TAX_RATES))

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "plan.tax_config") -> "TaxConfig":
        rates = dict(DEFAULT_TAX_RATES)
        for key, value in data.items():
            rates[key] = _expect_number(value, f"{path}.{key}")
        return cls(rates=rates)


@dataclass(slots=True)
class Plan:
    monthly_expenses: float
    duration_months: int
    inflation_rate: float = 0.0
    inflation_schedule: str | None = None
    stop_on_shortfall: bool = True
    min_duration: int = DEFAULT_MIN_DURATION
    tax_config: TaxConfig = field(default_factory=TaxConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "plan") -> "Plan":
        duration = int(_expect_number(_require(data, "duration_months", path), f"{path}.duration_months"))
        min_duration = _optional_int(data, "min_duration", path)
        if min_duration is None:
            min_duration = min(DEFAULT_MIN_DURATION, duration)
        return cls(
            monthly_expenses=_expect_number(_require(data, "monthly_expenses", path), f"{path}.monthly_expenses"),
            duration_months=duration,
            inflation_rate=_optional_number(data, "inflation_rate", path, 0.0),
            inflation_schedule=_optional(data, "inflation_schedule"),
            stop_on_shortfall=data.get("stop_on_shortfall") is not False,
            min_duration=min_duration,
            tax_config=TaxConfig.from_dict(_expect_dict(_optional(data, "tax_config", {}), f"{path}.tax_config")),
        )


@dataclass(slots=True)
class Asset:
    name: str
    type: str
    balance: float
    growth: GrowthSource = field(default_factory=lambda: FixedGrowth(0.0))
    min_balance: float = 0.0
    start_month: int | None = None
    compounding: str = "monthly"
    dynamic: bool = False

    @property
    def is_delayed(self) -> bool:
        return self.start_month is not None and self.start_month > 1

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "Asset":
        if "balance" in data:
            balance = _expect_number(data["balance"], f"{path}.balance")
        elif "initial_value" in data:
            balance = _expect_number(data["initial_value"], f"{path}.initial_value")
        else:
            raise SchemaError(f"{path}.balance: missing required field")

        schedule = _optional(data, "return_schedule")
        growth: GrowthSource
        if schedule is not None:
            growth = ScheduledGrowth(schedule=schedule)
        else:
            growth = FixedGrowth(rate=_optional_number(data, "interest_rate", path, 0.0))

        return cls(
            name=_require(data, "name", path),
            type=_optional(data, "type", "taxable"),
            balance=balance,
            growth=growth,
            min_balance=_optional_number(data, "min_balance", path, 0.0),
            start_month=_optional_int(data, "start_month", path),
            compounding=_optional(data, "compounding", "monthly"),
        )


@dataclass(slots=True)
class IncomeEvent:
    name: str
    amount: float
    start_month: int = 0
    stop_month: int | None = None

    def is_active(self, month_number: int) -> bool:
        if month_number < self.start_month:
            return False
        return self.stop_month is None or month_number <= self.stop_month

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "IncomeEvent":
        stop = _optional_int(data, "end_month", path)
        if stop is None:
            stop = _optional_int(data, "stop_month", path)
        return cls(
            name=_optional(data, "name", ""),
            amount=_optional_number(data, "amount", path, 0.0),
            start_month=_optional_int(data, "start_month", path) or 0,
            stop_month=stop,
        )


@dataclass(slots=True)
class DepositEvent:
    name: str
    amount: float
    target: str
    start_month: int | None
    stop_month: int | None

    def is_active(self, month_index: int) -> bool:
        if self.start_month is None or self.stop_month is None:
            return False
        return self.start_month <= month_index <= self.stop_month

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "DepositEvent":
        name = _optional(data, "name", "")
        return cls(
            name=name,
            amount=_optional_number(data, "amount", path, 0.0),
            target=_optional(data, "target", name),
            start_month=_optional_int(data, "start_month", path),
            stop_month=_optional_int(data, "stop_month", path),
        )


@dataclass(slots=True)
class WithdrawalOrderEntry:
    account: str
    order: int
    weight: float | None = None

    @property
    def is_weighted(self) -> bool:
        return self.weight is not None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "WithdrawalOrderEntry":
        return cls(
            account=_require(data, "account", path),
            order=int(_expect_number(_require(data, "order", path), f"{path}.order")),
            weight=_optional_number(data, "weight", path),
        )


@dataclass(slots=True)
class Metadata:
    title: str | None = None
    notes: str | None = None


@dataclass(slots=True)
class Scenario:
    plan: Plan
    assets: list[Asset]
    income: list[IncomeEvent] = field(default_factory=list)
    deposits: list[DepositEvent] = field(default_factory=list)
    order: list[WithdrawalOrderEntry] | None = None
    rate_schedules: dict[str, RateSchedule] = field(default_factory=dict)
    metadata: Metadata = field(default_factory=Metadata)

    def withdrawal_order(self) -> list[WithdrawalOrderEntry]:
        """Order entries sorted by priority; declaration order when the scenario has no order list."""
        if self.order is not None:
            return sorted(self.order, key=lambda entry: entry.order)
        return [WithdrawalOrderEntry(account=asset.name, order=idx + 1) for idx, asset in enumerate(self.assets)]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Scenario":
        order_raw = data.get("order")
        schedules_raw = _expect_dict(_optional(data, "rate_schedules", {}), "rate_schedules")
        metadata_raw = _expect_dict(_optional(data, "metadata", {}), "metadata")
        return cls(
            plan=Plan.from_dict(_expect_dict(_require(data, "plan", "scenario"), "plan")),
            assets=[
                Asset.from_dict(_expect_dict(item, f"assets[{idx}]"), f"assets[{idx}]")
                for idx, item in enumerate(_expect_list(_optional(data, "assets", []), "assets"))
            ],
            income=[
                IncomeEvent.from_dict(_expect_dict(item, f"income[{idx}]"), f"income[{idx}]")
                for idx, item in enumerate(_expect_list(_optional(data, "income", []), "income"))
            ],
            deposits=[
                DepositEvent.from_dict(_expect_dict(item, f"deposits[{idx}]"), f"deposits[{idx}]")
                for idx, item in enumerate(_expect_list(_optional(data, "deposits", []), "deposits"))
            ],
            order=[
                WithdrawalOrderEntry.from_dict(_expect_dict(item, f"order[{idx}]"), f"order[{idx}]")
                for idx, item in enumerate(_expect_list(order_raw, "order"))
            ]
            if order_raw is not None
            else None,
            rate_schedules={
                name: parse_rate_schedule(_expect_dict(config, f"rate_schedules.{name}"), f"rate_schedules.{name}")
                for name, config in schedules_raw.items()
            },
            metadata=Metadata(title=metadata_raw.get("title"), notes=metadata_raw.get("notes")),
        )


def load_scenario(path: str | Path) -> Scenario:
    """Load scenario JSON into strongly-typed dataclasses."""
    source = Path(path)
    raw = json.loads(source.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise SchemaError("scenario: root must be a JSON object")
    return Scenario.from_dict(raw)
