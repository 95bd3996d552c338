"""Tests for priority, proportional and floor-aware withdrawal allocation."""

import pytest

from drawdown.lifecycle import AssetState
from drawdown.schema import WithdrawalOrderEntry
from drawdown.tax import TaxCalculator
from drawdown.withdrawals import cover_shortfall, group_by_priority


def _state(name: str, balance: float, account_type: str = "tax_free", min_balance: float = 0.0) -> AssetState:
    return AssetState(name=name, account_type=account_type, balance=balance, min_balance=min_balance)


def _entry(account: str, order: int, weight: float | None = None) -> WithdrawalOrderEntry:
    return WithdrawalOrderEntry(account=account, order=order, weight=weight)


def _by_asset(events) -> dict[str, float]:
    out: dict[str, float] = {}
    for event in events:
        out[event.from_asset] = out.get(event.from_asset, 0.0) + event.net_amount
    return out


def test_group_by_priority_orders_groups():
    groups = group_by_priority([_entry("B", 2), _entry("A", 1), _entry("C", 2)])

    assert [[e.account for e in group] for group in groups] == [["A"], ["B", "C"]]


def test_priority_groups_drained_in_order():
    assets = {"First": _state("First", 3000.0), "Second": _state("Second", 10000.0)}
    order = [_entry("First", 1), _entry("Second", 2)]

    remaining, events = cover_shortfall(shortfall=5000.0, order=order, assets=assets, taxes=TaxCalculator())

    assert remaining == 0.0
    assert [e.from_asset for e in events] == ["First", "Second"]
    assert events[0].net_amount == pytest.approx(3000.0)
    assert events[1].net_amount == pytest.approx(2000.0)
    assert assets["First"].balance == 0.0


def test_proportional_split_by_weight():
    assets = {"A": _state("A", 500000.0), "B": _state("B", 500000.0)}
    order = [_entry("A", 1, 0.4), _entry("B", 1, 0.6)]

    remaining, events = cover_shortfall(shortfall=6000.0, order=order, assets=assets, taxes=TaxCalculator())

    nets = _by_asset(events)
    assert remaining == 0.0
    assert nets["A"] == pytest.approx(2400.0, abs=0.01)
    assert nets["B"] == pytest.approx(3600.0, abs=0.01)
    assert all(e.proportion is not None for e in events)


def test_zero_weight_is_never_drawn_even_when_only_funded_asset():
    assets = {"Empty": _state("Empty", 0.0), "Reserve": _state("Reserve", 100000.0)}
    order = [_entry("Empty", 1, 1.0), _entry("Reserve", 1, 0.0)]

    remaining, events = cover_shortfall(shortfall=2000.0, order=order, assets=assets, taxes=TaxCalculator())

    assert events == []
    assert remaining == pytest.approx(2000.0)
    assert assets["Reserve"].balance == 100000.0


def test_zero_weight_excludes_asset_from_later_groups():
    assets = {"Reserve": _state("Reserve", 100000.0)}
    order = [_entry("Reserve", 1, 0.0), _entry("Reserve", 2)]

    remaining, events = cover_shortfall(shortfall=2000.0, order=order, assets=assets, taxes=TaxCalculator())

    assert events == []
    assert remaining == pytest.approx(2000.0)


def test_min_balance_floor_caps_withdrawal():
    assets = {"Savings": _state("Savings", 50000.0, min_balance=10000.0)}
    order = [_entry("Savings", 1)]

    remaining, events = cover_shortfall(shortfall=45000.0, order=order, assets=assets, taxes=TaxCalculator())

    assert assets["Savings"].balance == 10000.0
    assert events[0].remaining_balance == 10000.0
    assert remaining == pytest.approx(5000.0)


def test_capped_gross_recomputes_net_after_tax():
    assets = {"IRA": _state("IRA", 1000.0, account_type="tax_deferred")}
    order = [_entry("IRA", 1)]

    remaining, events = cover_shortfall(shortfall=4000.0, order=order, assets=assets, taxes=TaxCalculator())

    assert events[0].gross_amount == pytest.approx(1000.0)
    assert events[0].net_amount == pytest.approx(780.0)
    assert events[0].tax_owed == pytest.approx(220.0)
    assert remaining == pytest.approx(3220.0)


def test_unweighted_group_with_several_funded_assets_splits_equally():
    assets = {"A": _state("A", 100000.0), "B": _state("B", 100000.0)}
    order = [_entry("A", 1), _entry("B", 1)]

    remaining, events = cover_shortfall(shortfall=4000.0, order=order, assets=assets, taxes=TaxCalculator())

    nets = _by_asset(events)
    assert remaining == 0.0
    assert nets["A"] == pytest.approx(2000.0)
    assert nets["B"] == pytest.approx(2000.0)


def test_unweighted_group_with_one_funded_asset_drains_it():
    assets = {"A": _state("A", 0.0), "B": _state("B", 100000.0, account_type="tax_deferred")}
    order = [_entry("A", 1), _entry("B", 1)]

    remaining, events = cover_shortfall(shortfall=4000.0, order=order, assets=assets, taxes=TaxCalculator())

    assert remaining == 0.0
    assert len(events) == 1
    assert events[0].from_asset == "B"
    assert events[0].gross_amount == pytest.approx(5128.21, abs=0.01)
    assert events[0].proportion is None


def test_depletion_reweighting_shifts_load_from_nearly_empty_account():
    assets = {"Thin": _state("Thin", 1500.0), "Deep": _state("Deep", 100000.0)}
    order = [_entry("Thin", 1, 0.5), _entry("Deep", 1, 0.5)]

    remaining, events = cover_shortfall(
        shortfall=2000.0, order=order, assets=assets, taxes=TaxCalculator(), max_passes=1
    )

    nets = _by_asset(events)
    # Thin: naive 1000, headroom 1500 < 2000 -> weight 0.5 * 0.75 = 0.375, renormalised to 3/7.
    assert nets["Thin"] == pytest.approx(2000.0 * 3 / 7)
    assert nets["Deep"] == pytest.approx(2000.0 * 4 / 7)
    assert remaining == pytest.approx(0.0, abs=0.01)


def test_later_passes_cover_residual_left_by_tax_caps():
    assets = {
        "IRA": _state("IRA", 1000.0, account_type="tax_deferred"),
        "Roth": _state("Roth", 100000.0),
    }
    order = [_entry("IRA", 1, 0.5), _entry("Roth", 1, 0.5)]

    remaining, events = cover_shortfall(shortfall=3000.0, order=order, assets=assets, taxes=TaxCalculator())

    assert remaining == pytest.approx(0.0, abs=0.01)
    assert sum(e.net_amount for e in events) == pytest.approx(3000.0, abs=0.01)
    assert assets["IRA"].balance >= 0.0


def test_missing_asset_reference_is_skipped():
    assets = {"Real": _state("Real", 10000.0)}
    order = [_entry("Ghost", 1), _entry("Real", 2)]

    remaining, events = cover_shortfall(shortfall=1000.0, order=order, assets=assets, taxes=TaxCalculator())

    assert remaining == 0.0
    assert [e.from_asset for e in events] == ["Real"]


def test_omitted_weight_in_weighted_group_gets_mean_weight():
    assets = {"A": _state("A", 100000.0), "B": _state("B", 100000.0), "C": _state("C", 100000.0)}
    order = [_entry("A", 1, 0.2), _entry("B", 1, 0.6), _entry("C", 1)]

    remaining, events = cover_shortfall(shortfall=1200.0, order=order, assets=assets, taxes=TaxCalculator())

    nets = _by_asset(events)
    assert remaining == 0.0
    assert nets["A"] == pytest.approx(200.0)
    assert nets["B"] == pytest.approx(600.0)
    assert nets["C"] == pytest.approx(400.0)
