"""
Tests for the command-line interface.
"""

import json

import pytest

from chain_insight.cli import main
from chain_insight.config.validation import get_env_var_mappings


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for env_var in get_env_var_mappings():
        monkeypatch.delenv(env_var, raising=False)


@pytest.fixture
def config_path(tmp_path):
    return str(tmp_path / "config.yaml")


@pytest.fixture
def database_url(tmp_path, monkeypatch):
    """File-backed SQLite database supplied through DATABASE_URL."""
    url = f"sqlite:///{tmp_path / 'chain.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    return url


@pytest.fixture
def initialized(config_path, database_url, capsys):
    assert main(["--config", config_path, "init"]) == 0
    capsys.readouterr()
    return config_path


class TestCliParsing:
    """Test argument handling."""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "chain-insight" in capsys.readouterr().out

    def test_unknown_command(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["collect-pools"])
        assert exc_info.value.code == 2

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            main(["--version"])
        assert "0.1.0" in capsys.readouterr().out


class TestSetupCommands:
    """Test init and validate."""

    def test_init_creates_config_and_tables(self, config_path, database_url, tmp_path, capsys):
        assert main(["--config", config_path, "init"]) == 0

        output = capsys.readouterr().out
        assert "Configuration initialized" in output
        assert "Database initialized successfully" in output
        assert (tmp_path / "config.yaml").exists()
        assert (tmp_path / "chain.db").exists()

    def test_init_refuses_to_overwrite(self, initialized, capsys):
        assert main(["--config", initialized, "init"]) == 1
        assert "already exists" in capsys.readouterr().out

        assert main(["--config", initialized, "init", "--force", "--skip-db"]) == 0

    def test_init_without_database_url(self, config_path, capsys):
        assert main(["--config", config_path, "init"]) == 0
        assert "skipping database initialization" in capsys.readouterr().out

    def test_validate(self, initialized, capsys):
        assert main(["--config", initialized, "validate", "--check-db"]) == 0

        output = capsys.readouterr().out
        assert "Configuration is valid" in output
        assert "Database connection OK" in output

    def test_validate_missing_file(self, config_path, capsys):
        assert main(["--config", config_path, "validate"]) == 1
        assert "not found" in capsys.readouterr().out


class TestAnalysisCommands:
    """Test commands against an initialized, empty store."""

    def test_analyze_missing_transaction(self, initialized, capsys):
        assert main(["--config", initialized, "analyze-tx", "0x" + "f" * 64]) == 1
        assert "[E002]" in capsys.readouterr().out

    def test_analyze_invalid_hash_json(self, initialized, capsys):
        assert main(["--config", initialized, "analyze-tx", "0x12", "--json"]) == 1

        response = json.loads(capsys.readouterr().out)
        assert response["success"] is False
        assert response["error_code"] == "E001"

    def test_analyze_block_on_empty_store(self, initialized, capsys):
        assert main(["--config", initialized, "analyze-block"]) == 1
        assert "[E003]" in capsys.readouterr().out

    def test_recent_blocks_empty(self, initialized, capsys):
        assert main(["--config", initialized, "recent-blocks", "--limit", "3"]) == 0
        assert "No blocks found." in capsys.readouterr().out

    def test_address_txs_invalid_address(self, initialized, capsys):
        assert main(["--config", initialized, "address-txs", "0x123"]) == 1
        assert "[E010]" in capsys.readouterr().out

    def test_address_risk_without_history(self, initialized, capsys):
        assert main(["--config", initialized, "address-risk", "0x" + "a" * 40]) == 0

        output = capsys.readouterr().out
        assert "Indexed transactions: 0" in output
        assert "Risk: 42.5/100 (MEDIUM, confidence 70%)" in output
        assert "BALANCE_ANALYSIS: unavailable" in output
        assert "New address with no transaction history" in output

    def test_address_risk_json(self, initialized, capsys):
        assert main(["--config", initialized, "address-risk", "0x" + "a" * 40, "--json"]) == 0

        response = json.loads(capsys.readouterr().out)
        assert response["success"] is True
        assert response["data"]["risk_score"]["category"] == "MEDIUM"

    def test_address_risk_invalid_address(self, initialized, capsys):
        assert main(["--config", initialized, "address-risk", "0x123"]) == 1
        assert "[E010]" in capsys.readouterr().out

    def test_transfer_risk(self, initialized, capsys):
        args = ["--config", initialized, "transfer-risk", "0x" + "b" * 40,
                "--from", "0x" + "a" * 40, "--amount", "5000"]
        assert main(args) == 0

        output = capsys.readouterr().out
        assert "Overall risk: 62.5/100 (HIGH" in output
        assert "NEW ADDRESS: No transaction history available" in output
        assert "Moderate risk - Proceed with caution" in output

    def test_transfer_risk_invalid_amount(self, initialized, capsys):
        args = ["--config", initialized, "transfer-risk", "0x" + "b" * 40, "--amount", "lots", "--json"]
        assert main(args) == 1
        assert json.loads(capsys.readouterr().out)["error_code"] == "E010"

    def test_cache_stats(self, initialized, capsys):
        assert main(["--config", initialized, "cache-stats"]) == 0

        stats = json.loads(capsys.readouterr().out)
        assert stats["success"] is True
        assert stats["data"]["performance"]["cache_size"] == 0

    def test_health_check(self, initialized, capsys):
        assert main(["--config", initialized, "health-check"]) == 0

        output = capsys.readouterr().out
        assert "HEALTHY" in output
        assert "998 (Hyperliquid" in output


class TestSimulateHistory:
    """Test the simulated timeline command."""

    def test_text_output_is_labeled(self, capsys):
        assert main(["simulate-history", "0x" + "a" * 40, "--seed", "1"]) == 0

        output = capsys.readouterr().out
        assert output.startswith("SIMULATED timeline")
        assert "(not chain data)" in output

    def test_json_output(self, capsys):
        args = ["simulate-history", "0x" + "a" * 40, "--seed", "3", "--limit", "4", "--json"]
        assert main(args) == 0

        timeline = json.loads(capsys.readouterr().out)
        assert timeline["is_simulated"] is True
        assert len(timeline["events"]) == 4
        assert all(event["is_simulated"] for event in timeline["events"])
