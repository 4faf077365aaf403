import json

import pytest
import yaml
from click.testing import CliRunner

from rewardledger.cli.main import cli

UNIT = 10**18

SCENARIO = {
    "start_tick": 0,
    "owner": "0xowner",
    "ledger": "0xledger",
    "tokens": [{"name": "LP Token", "symbol": "LP0"}],
    "balances": {"LP0": {"0xalice": 1000 * UNIT, "0xbob": 1000 * UNIT}},
    "operations": [
        {"tick": 0, "op": "add_pool", "caller": "0xowner", "asset": "LP0", "weight": 100},
        {"tick": 1, "op": "deposit_lp", "participant": "0xalice", "pool_id": 0, "amount": 1000 * UNIT},
        {"tick": 4, "op": "deposit_lp", "participant": "0xbob", "pool_id": 0, "amount": 1000 * UNIT},
        {"tick": 8, "op": "withdraw_lp", "participant": "0xbob", "pool_id": 0, "amount": 5000 * UNIT},
    ],
}


@pytest.fixture
def scenario_file(tmp_path, reset_package_logger):
    path = tmp_path / "scenario.yaml"
    path.write_text(yaml.safe_dump(SCENARIO))
    return path


def _invoke(*args):
    runner = CliRunner()
    return runner.invoke(cli, ["--log-level", "CRITICAL", *args])


def test_replay_json(scenario_file):
    result = _invoke("replay", str(scenario_file), "--format", "json")
    assert result.exit_code == 0, result.output

    payload = json.loads(result.output)
    assert payload["final_tick"] == 8
    assert [step["ok"] for step in payload["steps"]] == [True, True, True, False]
    assert payload["steps"][3]["error"]["error_type"] == "InsufficientStakeError"
    assert payload["ledger"]["registry"]["pools"][0]["total_staked"] == 2000 * UNIT
    assert payload["balances"]["LP0"]["0xledger"] == 2000 * UNIT


def test_replay_yaml(scenario_file):
    result = _invoke("replay", str(scenario_file), "--format", "yaml")
    assert result.exit_code == 0, result.output
    payload = yaml.safe_load(result.output)
    assert len(payload["ledger"]["events"]) == 3


def test_replay_table(scenario_file):
    result = _invoke("replay", str(scenario_file))
    assert result.exit_code == 0, result.output
    assert "Operations" in result.output


def test_replay_strict_fails(scenario_file):
    result = _invoke("replay", str(scenario_file), "--strict")
    assert result.exit_code == 1
    assert "InsufficientStakeError" in result.output


def test_global_json_flag(scenario_file):
    runner = CliRunner()
    result = runner.invoke(cli, ["--log-level", "CRITICAL", "--json-output", "replay", str(scenario_file)])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["final_tick"] == 8


def test_pending(scenario_file):
    # Pool share 3/4 of 10 per tick: alice alone for 3 ticks, then half of 4 ticks
    result = _invoke("pending", str(scenario_file), "0xAlice", "--pool-id", "0")
    assert result.exit_code == 0, result.output
    assert int(result.output.strip()) == 37_500_000_000_000_000_000


def test_pending_json(scenario_file):
    result = _invoke("--json-output", "pending", str(scenario_file), "0xbob", "--pool-id", "0")
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["pending"] == 15_000_000_000_000_000_000
    assert payload["tick"] == 8


def test_pending_unknown_pool(scenario_file):
    result = _invoke("pending", str(scenario_file), "0xalice", "--pool-id", "3")
    assert result.exit_code == 1
    assert "UnknownPoolError" in result.output


def test_invalid_scenario(tmp_path, reset_package_logger):
    path = tmp_path / "bad.yaml"
    path.write_text(yaml.safe_dump({"operations": [{"op": "explode"}]}))
    result = _invoke("replay", str(path))
    assert result.exit_code == 1
    assert "ConfigurationError" in result.output


def test_config_command(monkeypatch, reset_package_logger):
    monkeypatch.setenv("REWARDLEDGER_BASE_RATIO", "32")
    result = _invoke("--json-output", "config")
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["base_ratio"] == 32
