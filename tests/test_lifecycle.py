import pytest

from drawdown.lifecycle import AssetLedger, monthly_income
from drawdown.rates import RateScheduleResolver
from drawdown.schema import Asset, DepositEvent, FixedGrowth, IncomeEvent


def _asset(name: str, balance: float, start_month: int | None = None, rate: float = 0.0) -> Asset:
    return Asset(name=name, type="taxable", balance=balance, growth=FixedGrowth(rate), start_month=start_month)


def test_assets_partitioned_into_active_and_delayed():
    ledger = AssetLedger([_asset("Now", 100.0), _asset("One", 50.0, start_month=1), _asset("Later", 75.0, start_month=6)])

    assert set(ledger.active) == {"Now", "One"}
    assert [asset.name for asset in ledger.pending] == ["Later"]
    assert list(ledger.history) == ["Now", "One", "Later"]


def test_activation_happens_on_matching_month_only():
    ledger = AssetLedger([_asset("Later", 75.0, start_month=3)])

    assert ledger.activate_due(2) == []
    assert ledger.activate_due(3) == ["Later"]
    assert ledger.active["Later"].balance == 75.0
    assert ledger.pending == []


def test_newly_activated_asset_skips_growth_and_withdrawals_that_month():
    resolver = RateScheduleResolver({})
    ledger = AssetLedger([_asset("Later", 1200.0, start_month=3, rate=0.12)])

    ledger.activate_due(3)
    assert "Later" not in ledger.withdrawable(3)
    ledger.apply_growth(resolver, month_index=2, month_number=3)
    assert ledger.active["Later"].balance == 1200.0

    assert "Later" in ledger.withdrawable(4)
    ledger.apply_growth(resolver, month_index=3, month_number=4)
    assert ledger.active["Later"].balance == pytest.approx(1212.0)


def test_deposit_creates_missing_target_with_zero_padded_history():
    ledger = AssetLedger([_asset("Savings", 100.0)])
    ledger.record_balances()
    ledger.record_balances()

    deposit = DepositEvent(name="Windfall", amount=500.0, target="Windfall", start_month=2, stop_month=2)
    ledger.apply_deposits([deposit], month_index=2)
    ledger.record_balances()

    state = ledger.active["Windfall"]
    assert state.dynamic
    assert state.account_type == "taxable"
    assert ledger.history["Windfall"] == [0.0, 0.0, 500.0]


def test_negative_deposit_models_lump_expense():
    ledger = AssetLedger([_asset("Savings", 1000.0)])
    deposit = DepositEvent(name="Roof", amount=-400.0, target="Savings", start_month=0, stop_month=0)

    ledger.apply_deposits([deposit], month_index=0)
    ledger.apply_deposits([deposit], month_index=1)

    assert ledger.active["Savings"].balance == 600.0


def test_deposit_without_range_is_ignored():
    ledger = AssetLedger([_asset("Savings", 1000.0)])
    deposit = DepositEvent(name="Gift", amount=100.0, target="Savings", start_month=None, stop_month=None)

    ledger.apply_deposits([deposit], month_index=0)

    assert ledger.active["Savings"].balance == 1000.0


def test_monthly_income_uses_inclusive_range_and_open_end():
    events = [
        IncomeEvent(name="Pension", amount=1000.0, start_month=3, stop_month=5),
        IncomeEvent(name="Social Security", amount=2000.0, start_month=5),
    ]

    assert monthly_income(events, 2) == 0.0
    assert monthly_income(events, 3) == 1000.0
    assert monthly_income(events, 5) == 3000.0
    assert monthly_income(events, 6) == 2000.0


def test_csv_asset_names_drop_empty_dynamic_targets():
    ledger = AssetLedger([_asset("Savings", 1000.0)])
    ledger.apply_deposits([DepositEvent(name="X", amount=0.0, target="X", start_month=0, stop_month=0)], month_index=0)

    assert ledger.csv_asset_names() == ["Savings"]
