import copy
import json
from pathlib import Path

SAMPLE_SCENARIO = Path(__file__).resolve().parent.parent / "sample_scenario.json"


def write_scenario(tmp_path: Path, data: dict, filename: str = "scenario.json") -> Path:
    path = tmp_path / filename
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def clone_scenario(data: dict) -> dict:
    return copy.deepcopy(data)


def single_asset_scenario(
    *,
    balance: float,
    expenses: float,
    months: int,
    account_type: str = "tax_free",
    rate: float = 0.0,
    stop_on_shortfall: bool = False,
) -> dict:
    return {
        "plan": {
            "monthly_expenses": expenses,
            "duration_months": months,
            "stop_on_shortfall": stop_on_shortfall,
        },
        "assets": [
            {"name": "Savings", "type": account_type, "balance": balance, "interest_rate": rate},
        ],
    }
