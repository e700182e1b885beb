"""
Test suite for the command-line interface.
"""

import pytest

from txsender.cli import build_config, create_parser, main, resolve_passphrase
from txsender.config import DispatcherConfig
from txsender.core.dispatcher import Dispatcher

from conftest import PASSPHRASE, RECEIVER, SENDER


class TestParser:
    """Tests for argument parsing."""

    def test_send(self):
        args = create_parser().parse_args([
            "send", "--sender", SENDER, "--receiver", RECEIVER, "--value", "10", "--sync",
        ])

        assert args.command == "send"
        assert args.value == 10
        assert args.sync is True
        assert args.data == ""

    def test_send_requires_sender(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["send", "--receiver", RECEIVER])

    @pytest.mark.parametrize("command", ["sendBatch", "send-batch"])
    def test_send_batch(self, command):
        args = create_parser().parse_args([
            command, "--batch-file", "batch.xlsx", "--begin", "2", "--end", "5", "--token-file", "tokens.json",
        ])

        assert args.batch_file == "batch.xlsx"
        assert (args.begin, args.end) == (2, 5)
        assert args.token_file == "tokens.json"

    def test_batch_defaults_cover_all_rows(self):
        args = create_parser().parse_args(["sendBatch", "--batch-file", "batch.csv"])

        assert (args.begin, args.end) == (0, 0)

    def test_flags_override_config(self):
        args = create_parser().parse_args([
            "sendBatch", "--batch-file", "b.csv", "--client", "http://rpc.test:8545",
            "--keystore", "/keys", "--sheet", "payouts", "--log-level", "DEBUG",
        ])

        config = build_config(args)

        assert config.rpc_url == "http://rpc.test:8545"
        assert config.keystore_dir == "/keys"
        assert config.sheet == "payouts"
        assert config.log_level == "DEBUG"


class TestResolvePassphrase:
    """Tests for choosing the passphrase source."""

    def test_flag_wins(self, tmp_path):
        secret = tmp_path / "secret"
        secret.write_text("from-file\n")

        assert resolve_passphrase("from-flag", str(secret), DispatcherConfig(passphrase="cfg")) == "from-flag"

    def test_file_first_line(self, tmp_path):
        secret = tmp_path / "secret"
        secret.write_text("from-file\nignored\n")

        assert resolve_passphrase(None, str(secret), DispatcherConfig()) == "from-file"

    def test_config_fallback(self):
        assert resolve_passphrase(None, None, DispatcherConfig(passphrase="cfg")) == "cfg"

    def test_none_when_not_interactive(self):
        assert resolve_passphrase(None, None, DispatcherConfig(passphrase=None)) is None


class TestMain:
    """Tests for the entry point exit codes."""

    def test_no_command(self):
        assert main([]) == 1

    def test_invalid_range(self, tmp_path, capsys):
        batch = tmp_path / "batch.csv"
        batch.write_text(f"{SENDER},{RECEIVER},1,,\n")

        assert main(["sendBatch", "--batch-file", str(batch), "--begin", "3", "--end", "1"]) == 1
        assert "invalid batch index" in capsys.readouterr().err

    def test_missing_batch_file(self, tmp_path, capsys):
        assert main(["sendBatch", "--batch-file", str(tmp_path / "missing.csv")]) == 1
        assert "Batch file not found" in capsys.readouterr().err

    def test_batch_without_end_sends_every_row(self, tmp_path, keystore_dir, mock_node, monkeypatch, capsys):
        monkeypatch.setattr("txsender.cli.Dispatcher", lambda config: Dispatcher(config, node=mock_node))
        batch = tmp_path / "batch.csv"
        batch.write_text(f"{SENDER},{RECEIVER},1,,\n{SENDER},{RECEIVER},2,,\n")

        code = main([
            "sendBatch", "--batch-file", str(batch),
            "--keystore", str(keystore_dir), "--passphrase", PASSPHRASE,
        ])

        assert code == 0
        assert "Rows 0-2: 2 sent, 0 failed" in capsys.readouterr().out
        assert len(mock_node.submitted) == 2
