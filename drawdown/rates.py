"""Rate schedule resolution for growth and inflation."""

from __future__ import annotations

import logging
from typing import Callable

from .schema import (
    DEFAULT_MAP_BASE_YEAR,
    FixedGrowth,
    FixedSchedule,
    GrowthSource,
    MapSchedule,
    PipelineSchedule,
    PipelineStep,
    Plan,
    RateSchedule,
    ScheduledGrowth,
    SequenceSchedule,
)

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = 12


def _sequence_rate(schedule: SequenceSchedule, month: int) -> float:
    year_index = month // MONTHS_PER_YEAR - schedule.start_year
    if 0 <= year_index < len(schedule.values):
        return schedule.values[year_index]
    if schedule.default_rate is not None:
        return schedule.default_rate
    if schedule.values:
        return schedule.values[-1]
    return 0.0


def _map_rate(schedule: MapSchedule, month: int) -> float:
    year = month // MONTHS_PER_YEAR + schedule.base_year
    for period in schedule.periods:
        if period.start_year <= year <= period.stop_year:
            return period.rate
    return schedule.default_rate


class RateScheduleResolver:
    """Resolve named rate schedules to annual or monthly rates.

    Unknown schedule names resolve to 0.0 so half-written scenarios still run.
    Resolved annual rates are memoised per (schedule, month).
    """

    def __init__(self, schedules: dict[str, RateSchedule], trace: Callable[[str], None] | None = None) -> None:
        self._schedules = dict(schedules)
        self._cache: dict[tuple[str, int], float] = {}
        self._trace = trace or logger.debug
        self._reported_missing: set[str] = set()

    def annual_rate(self, name: str, month: int) -> float:
        key = (name, month)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        schedule = self._schedules.get(name)
        if schedule is None:
            if name not in self._reported_missing:
                self._reported_missing.add(name)
                self._trace(f"rate schedule '{name}' not found; using 0.0")
            rate = 0.0
        else:
            rate = self._rate_for(schedule, month)
        self._cache[key] = rate
        return rate

    def resolve(self, schedule: str | None, fixed_rate: float, month: int) -> float:
        """Return the monthly rate for ``month`` from a schedule or the legacy fixed rate."""
        if schedule is not None:
            return self.annual_rate(schedule, month) / MONTHS_PER_YEAR
        return (fixed_rate or 0.0) / MONTHS_PER_YEAR

    def growth_rate(self, growth: GrowthSource, month: int) -> float:
        if isinstance(growth, ScheduledGrowth):
            return self.resolve(growth.schedule, 0.0, month)
        if isinstance(growth, FixedGrowth):
            return self.resolve(None, growth.rate, month)
        raise TypeError(f"unsupported growth source: {growth!r}")

    def inflation_multiplier(self, plan: Plan, month: int) -> float:
        # Scheduled inflation compounds every month; the legacy flat rate steps once a year.
        if plan.inflation_schedule is not None:
            monthly = self.resolve(plan.inflation_schedule, 0.0, month)
            return (1.0 + monthly) ** month
        return (1.0 + (plan.inflation_rate or 0.0)) ** (month // MONTHS_PER_YEAR)

    def inflated_expenses(self, plan: Plan, month: int) -> float:
        return plan.monthly_expenses * self.inflation_multiplier(plan, month)

    def _rate_for(self, schedule: RateSchedule, month: int) -> float:
        if isinstance(schedule, FixedSchedule):
            return schedule.rate
        if isinstance(schedule, SequenceSchedule):
            return _sequence_rate(schedule, month)
        if isinstance(schedule, MapSchedule):
            return _map_rate(schedule, month)
        if isinstance(schedule, PipelineSchedule):
            rate = 0.0
            for step in schedule.steps:
                rate = self._apply_step(rate, step, month)
            return rate
        raise TypeError(f"unsupported rate schedule: {schedule!r}")

    def _apply_step(self, rate: float, step: PipelineStep, month: int) -> float:
        op = step.operation
        params = step.params
        years = month // MONTHS_PER_YEAR
        if op == "start_with":
            return float(params)
        if op == "add":
            return rate + float(params)
        if op == "multiply":
            return rate * float(params)
        if op == "add_trend":
            return rate + float(params["annual_change"]) * years
        if op == "add_cycles":
            period = int(params["period"])
            amplitude = float(params["amplitude"])
            cycle_year = years % period
            if cycle_year == 0:
                return rate + amplitude
            if cycle_year == period // 2:
                return rate - amplitude
            return rate
        if op == "overlay_sequence":
            override = params.get(str(years + DEFAULT_MAP_BASE_YEAR))
            return float(override) if override is not None else rate
        if op == "clamp":
            return max(float(params["min"]), min(float(params["max"]), rate))
        if op == "floor":
            return max(float(params), rate)
        if op == "ceiling":
            return min(float(params), rate)
        self._trace(f"unknown pipeline operation '{op}' ignored")
        return rate
