"""Withdrawal allocation across prioritized, weighted accounts."""

from __future__ import annotations

from dataclasses import dataclass
from itertools import groupby
import logging
from typing import Callable

from .lifecycle import AssetState
from .schema import WithdrawalOrderEntry
from .tax import TaxCalculator, TaxResult

logger = logging.getLogger(__name__)

EPSILON = 0.01
MAX_PASSES = 5

# Tunable: an account whose headroom is under this multiple of its naive share
# has its weight scaled down in proportion.
DEPLETION_REWEIGHT_FACTOR = 2.0


@dataclass(slots=True)
class Withdrawal:
    from_asset: str
    account_type: str
    gross_amount: float
    net_amount: float
    tax_owed: float
    effective_tax_rate: float
    remaining_balance: float
    weight: float | None = None
    proportion: float | None = None


def group_by_priority(entries: list[WithdrawalOrderEntry]) -> list[list[WithdrawalOrderEntry]]:
    ordered = sorted(entries, key=lambda entry: entry.order)
    return [list(group) for _, group in groupby(ordered, key=lambda entry: entry.order)]


def excluded_accounts(entries: list[WithdrawalOrderEntry]) -> set[str]:
    """Accounts carrying an explicit zero weight anywhere in the order."""
    return {entry.account for entry in entries if entry.weight is not None and entry.weight <= 0}


def _debit(
    state: AssetState,
    target_net: float,
    taxes: TaxCalculator,
    events: list[Withdrawal],
    *,
    weight: float | None = None,
    proportion: float | None = None,
) -> float:
    """Withdraw enough gross to net ``target_net``, capped at the account's headroom."""
    available = state.available
    result: TaxResult = taxes.gross_up(target_net, state.account_type)
    if result.gross > available:
        result = taxes.tax_on_gross(available, state.account_type)
    # Never below the floor.
    state.balance = max(state.min_balance, state.balance - result.gross)
    events.append(
        Withdrawal(
            from_asset=state.name,
            account_type=state.account_type,
            gross_amount=result.gross,
            net_amount=result.net,
            tax_owed=result.tax,
            effective_tax_rate=result.rate,
            remaining_balance=state.balance,
            weight=weight,
            proportion=proportion,
        )
    )
    return result.net


def withdraw_single(state: AssetState, shortfall: float, taxes: TaxCalculator, events: list[Withdrawal]) -> float:
    if shortfall <= 0 or state.available <= 0:
        return shortfall
    return shortfall - _debit(state, shortfall, taxes, events)


def _depletion_adjusted(candidates: list[tuple[AssetState, float]], shortfall: float) -> list[tuple[AssetState, float]]:
    total_weight = sum(weight for _, weight in candidates)
    adjusted: list[tuple[AssetState, float]] = []
    for state, weight in candidates:
        normalized = weight / total_weight
        naive_target = shortfall * normalized
        threshold = DEPLETION_REWEIGHT_FACTOR * naive_target
        available = state.available
        if naive_target > 0 and available < threshold:
            normalized *= available / threshold
        adjusted.append((state, normalized))

    adjusted_total = sum(weight for _, weight in adjusted)
    return [(state, weight / adjusted_total) for state, weight in adjusted]


def withdraw_proportionally(
    candidates: list[tuple[AssetState, float, float | None]],
    shortfall: float,
    taxes: TaxCalculator,
    events: list[Withdrawal],
) -> float:
    """Split ``shortfall`` across ``(state, weight, declared_weight)`` candidates.

    Returns the shortfall left uncovered, including any share an individual
    account could not fund once its tax gross-up hit its headroom.
    """
    if shortfall <= 0:
        return shortfall

    eligible = [(state, weight) for state, weight, _ in candidates if weight > 0 and state.available > 0]
    if not eligible:
        return shortfall

    declared = {id(state): declared_weight for state, _, declared_weight in candidates}
    weights = _depletion_adjusted(eligible, shortfall)
    total = min(shortfall, sum(state.available for state, _ in eligible))

    residual = 0.0
    for state, weight in sorted(weights, key=lambda item: item[1], reverse=True):
        share = total * weight
        target = min(share, state.available)
        if target <= 0:
            residual += share
            continue
        achieved = _debit(state, target, taxes, events, weight=declared[id(state)], proportion=weight)
        residual += share - achieved

    return shortfall - total + residual


def allocate(
    shortfall: float,
    order: list[WithdrawalOrderEntry],
    assets: dict[str, AssetState],
    taxes: TaxCalculator,
    events: list[Withdrawal],
) -> float:
    """Run one pass over all priority groups; return the remaining shortfall."""
    remaining = shortfall
    excluded = excluded_accounts(order)

    for group in group_by_priority(order):
        if remaining <= EPSILON:
            break

        members = [
            (entry, assets[entry.account])
            for entry in group
            if entry.account in assets and entry.account not in excluded
        ]
        if not members:
            continue

        if any(entry.is_weighted for entry in group):
            explicit = [entry.weight for entry, _ in members if entry.weight is not None and entry.weight > 0]
            fallback = sum(explicit) / len(explicit) if explicit else 1.0
            candidates = [
                (state, entry.weight if entry.weight is not None else fallback, entry.weight)
                for entry, state in members
            ]
            remaining = withdraw_proportionally(candidates, remaining, taxes, events)
            continue

        funded = [state for _, state in members if state.available > 0]
        if len(funded) == 1:
            remaining = withdraw_single(funded[0], remaining, taxes, events)
        elif funded:
            remaining = withdraw_proportionally([(state, 1.0, None) for state in funded], remaining, taxes, events)

    return remaining


def cover_shortfall(
    *,
    shortfall: float,
    order: list[WithdrawalOrderEntry],
    assets: dict[str, AssetState],
    taxes: TaxCalculator,
    max_passes: int = MAX_PASSES,
    trace: Callable[[str], None] | None = None,
) -> tuple[float, list[Withdrawal]]:
    """Fund ``shortfall`` from ``assets`` using repeated allocation passes.

    Each pass re-derives the remaining need against updated balances. Stops
    when the need is covered, a pass makes no measurable progress, or
    ``max_passes`` is reached. Returns the remaining shortfall and the
    withdrawal records in the order they were made.
    """
    trace = trace or logger.debug
    events: list[Withdrawal] = []
    remaining = shortfall

    for pass_number in range(1, max_passes + 1):
        if remaining <= EPSILON:
            break
        updated = allocate(remaining, order, assets, taxes, events)
        progress = remaining - updated
        remaining = updated
        if progress < EPSILON:
            if remaining > EPSILON:
                trace(f"allocation pass {pass_number} made no progress; {remaining:.2f} uncovered")
            break

    return max(0.0, remaining), events
