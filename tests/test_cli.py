"""Tests for CLI argument parsing and entry point."""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from mailgate.cli import build_parser, main, resolve_config
from mailgate.config import FASTMAIL_SESSION_URL
from mailgate.errors import NotFoundError


class TestBuildParser:
    def test_emails_command(self):
        args = build_parser().parse_args(["emails", "Archive", "--limit", "5"])
        assert args.command == "emails"
        assert args.mailbox == "Archive"
        assert args.limit == 5
        assert args.config == Path("config.toml")

    def test_common_args_after_command(self):
        args = build_parser().parse_args(["read", "e1", "-c", "/tmp/x.toml", "-v"])
        assert args.email_id == "e1"
        assert args.config == Path("/tmp/x.toml")
        assert args.verbose is True

    def test_common_args_before_command(self):
        args = build_parser().parse_args(["-c", "/etc/mine.toml", "-v", "serve"])
        assert args.command == "serve"
        assert args.config == Path("/etc/mine.toml")
        assert args.verbose is True

    def test_common_args_default_with_command(self):
        args = build_parser().parse_args(["mailboxes"])
        assert args.config == Path("config.toml")
        assert args.verbose is False

    def test_masked_state_choices(self):
        parser = build_parser()
        assert parser.parse_args(["masked", "--state", "disabled"]).state == "disabled"
        with pytest.raises(SystemExit):
            parser.parse_args(["masked", "--state", "bogus"])


class TestResolveConfig:
    def test_missing_file_uses_defaults(self, temp_dir):
        config = resolve_config(temp_dir / "absent.toml")
        assert config.jmap.session_url == FASTMAIL_SESSION_URL

    def test_loads_file(self, sample_config_toml):
        config = resolve_config(sample_config_toml)
        assert config.server.name == "testmail"


class TestMain:
    def test_no_command_prints_help(self, capsys):
        with patch("sys.argv", ["mailgate"]):
            with pytest.raises(SystemExit) as exc_info:
                main()
        assert exc_info.value.code == 0
        assert "usage" in capsys.readouterr().out

    def test_dispatches_command(self, temp_dir):
        cmd = AsyncMock()
        argv = ["mailgate", "search", "invoice", "--limit", "3", "-c", str(temp_dir / "none.toml")]
        with patch("sys.argv", argv), patch("mailgate.cli.search_cmd", cmd):
            main()

        config, query, limit = cmd.await_args.args
        assert query == "invoice"
        assert limit == 3

    def test_errors_exit_nonzero(self, temp_dir):
        cmd = AsyncMock(side_effect=NotFoundError("email", "e9"))
        argv = ["mailgate", "read", "e9", "-c", str(temp_dir / "none.toml")]
        with patch("sys.argv", argv), patch("mailgate.cli.read_email_cmd", cmd):
            with pytest.raises(SystemExit) as exc_info:
                main()
        assert exc_info.value.code == 1
