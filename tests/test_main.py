"""
Tests for the CLI driver: configuration loading, attack run and history.

Run with: pytest tests/test_main.py -v
"""

import json
from pathlib import Path

import pytest

from cbc_timing_oracle import main as cli
from cbc_timing_oracle.attack.padding_oracle_attacker import UndecidedPolicy
from cbc_timing_oracle.core.exceptions import (
    ByteRecoveryFailedException, ConfigurationError
)


CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "config.yaml"


@pytest.fixture
def config():
    return cli.load_config(str(CONFIG_PATH))


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in ("SECRET_MESSAGE", "RANDOM_SEED", "USE_SIMULATED_CLOCK", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


class TestConfig:
    """Test YAML configuration loading."""

    def test_shipped_config_builds(self, config):
        oracle_config = cli.build_oracle_config(config)
        sprt_config = cli.build_sprt_config(config)

        assert oracle_config.block_size == 8
        assert oracle_config.key_byte == 0xAA
        assert sprt_config.max_attempts == 100
        assert cli.build_attack_config(config).undecided_policy is UndecidedPolicy.REJECT

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            cli.load_config(str(tmp_path / "nope.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("oracle: [unclosed")

        with pytest.raises(ConfigurationError):
            cli.load_config(str(path))

    def test_missing_section(self, tmp_path):
        path = tmp_path / "partial.yaml"
        path.write_text("oracle:\n  block_size: 8\n")

        with pytest.raises(ConfigurationError):
            cli.load_config(str(path))

    def test_unknown_policy(self, config):
        config['attack']['undecided_policy'] = "retry"

        with pytest.raises(ConfigurationError):
            cli.build_attack_config(config)

    def test_env_overrides(self, config, monkeypatch):
        monkeypatch.setenv("RANDOM_SEED", "42")
        monkeypatch.setenv("USE_SIMULATED_CLOCK", "false")

        assert cli.random_seed(config) == 42
        assert cli.use_simulated_clock(config) is False

    def test_bad_seed(self, config, monkeypatch):
        monkeypatch.setenv("RANDOM_SEED", "abc")

        with pytest.raises(ConfigurationError):
            cli.random_seed(config)


class TestRunAttack:
    """Test the attack flow driven by the CLI."""

    def test_run_attack_records_history(self, config, workdir, monkeypatch, capsys, logger):
        monkeypatch.setenv("SECRET_MESSAGE", "SECRET0")
        monkeypatch.setenv("RANDOM_SEED", "1")
        monkeypatch.setenv("USE_SIMULATED_CLOCK", "true")

        cli.run_attack(config, logger)

        output = capsys.readouterr().out
        assert "Recovered Text: SECRET0" in output
        assert "SUCCESS" in output

        history = json.loads((workdir / cli.RESULTS_FILE).read_text())
        assert history[-1]["recovered"] == "SECRET0"
        assert history[-1]["success"] is True
        assert history[-1]["queries"] > 0

    def test_failed_attack_explains_and_records(self, config, workdir, monkeypatch,
                                                capsys, logger):
        monkeypatch.setenv("SECRET_MESSAGE", "SECRET0")

        def fail(self):
            raise ByteRecoveryFailedException(0, 6, [])

        monkeypatch.setattr(cli.PaddingOracleAttacker, "recover_message", fail)

        cli.run_attack(config, logger)

        output = capsys.readouterr().out
        assert "ATTACK FAILED" in output
        assert "short valid padding" in output
        assert "RANDOM_SEED" in output

        history = json.loads((workdir / cli.RESULTS_FILE).read_text())
        assert history[-1]["success"] is False
        assert history[-1]["recovered"] == ""

    def test_view_history_empty(self, workdir, capsys):
        cli.view_history()

        assert "No previous attacks found" in capsys.readouterr().out

    def test_view_history_lists_results(self, workdir, capsys):
        cli.save_result(7, "SECRET0", 1.234, 2100, True)
        cli.save_result(7, "", 0.5, 300, False)

        cli.view_history()

        output = capsys.readouterr().out
        assert "1. [" in output
        assert "OK" in output
        assert "Recovered: SECRET0 (7 bytes)" in output
        assert "Time: 1.23s | Queries: 2100" in output
        assert "MISMATCH" in output

    def test_load_results_ignores_corrupt_file(self, workdir):
        (workdir / cli.RESULTS_FILE).write_text("{not json")

        assert cli.load_results() == []


class TestMain:
    """Test the interactive entry point."""

    def test_exit_option(self, workdir, monkeypatch):
        monkeypatch.setenv("CONFIG_PATH", str(CONFIG_PATH))
        monkeypatch.setattr("builtins.input", lambda prompt="": "4")

        assert cli.main() == 0

    def test_configuration_error_exit_code(self, workdir, monkeypatch):
        monkeypatch.setenv("CONFIG_PATH", str(workdir / "missing.yaml"))

        assert cli.main() == 1


class TestPaddingCheckMenu:
    """Test the single-query padding check from the menu."""

    @staticmethod
    def answer(monkeypatch, *replies):
        replies = iter(replies)
        monkeypatch.setattr("builtins.input", lambda prompt="": next(replies))

    def test_valid_padding(self, config, monkeypatch, capsys, logger):
        # 0xad ^ 0xaa = 0x07: a full block of padding
        self.answer(monkeypatch, "PASSWRD1", "00" * 8, "ad" * 8)

        cli.check_padding_menu(config, logger)

        output = capsys.readouterr().out
        assert "Padding: VALID" in output
        assert "Simulated response time" in output

    def test_invalid_padding(self, config, monkeypatch, capsys, logger):
        # 0xa2 ^ 0xaa = 0x08: longer than the block
        self.answer(monkeypatch, "PASSWRD1", "00" * 8, "a2" * 8)

        cli.check_padding_menu(config, logger)

        assert "Padding: INVALID" in capsys.readouterr().out

    def test_malformed_hex(self, config, monkeypatch, capsys, logger):
        self.answer(monkeypatch, "PASSWRD1", "00" * 8, "zz")

        cli.check_padding_menu(config, logger)

        assert "Invalid input" in capsys.readouterr().out

    def test_wrong_block_length(self, config, monkeypatch, capsys, logger):
        self.answer(monkeypatch, "PASSWRD1", "00" * 4, "ad" * 8)

        cli.check_padding_menu(config, logger)

        output = capsys.readouterr().out
        assert "Invalid input" in output
        assert "Padding:" not in output
