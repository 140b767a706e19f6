"""Tests for CLI commands - config, log, target, status and sync."""

import json
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from mindsync.client.cli import cli
from mindsync.client.cli.config import parse_setting
from mindsync.core.dates import today_str


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_dir(tmp_path: Path) -> Iterator[Path]:
    """Point the CLI at a temporary config directory."""
    with patch("mindsync.client.cli.config.get_config_dir", return_value=tmp_path):
        yield tmp_path


@pytest.fixture
def keyring() -> Iterator[MagicMock]:
    """Empty OS keyring."""
    with patch("mindsync.client.keystore.keyring") as fake:
        fake.get_password.return_value = None
        yield fake


class TestParseSetting:
    """Tests for command-line value conversion."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("yes", True), ("off", False), ("T", True), ("n", False), (" 1 ", True), ("FALSE", False)],
    )
    def test_bool_values(self, value: str, expected: bool) -> None:
        """Booleans accept the same spellings as click options."""
        assert parse_setting("wifi_only", value) is expected

    def test_numbers(self) -> None:
        assert parse_setting("auto_sync_interval_minutes", "30") == 30
        assert parse_setting("request_timeout", "2.5") == 2.5

    def test_invalid_bool(self) -> None:
        with pytest.raises(ValueError, match="wifi_only"):
            parse_setting("wifi_only", "maybe")

    def test_invalid_int(self) -> None:
        with pytest.raises(ValueError, match="auto_sync_interval_minutes"):
            parse_setting("auto_sync_interval_minutes", "2.5")

    def test_unknown_key(self) -> None:
        with pytest.raises(KeyError):
            parse_setting("sync_folder", "/tmp")


class TestConfigCommand:
    """Tests for 'mindsync config'."""

    def test_shows_defaults(self, runner: CliRunner, config_dir: Path) -> None:
        result = runner.invoke(cli, ["config"])

        assert result.exit_code == 0
        assert "provider = gdrive" in result.output
        assert "week_start_day = Sunday" in result.output

    def test_set_and_show(self, runner: CliRunner, config_dir: Path) -> None:
        """Setting a value should persist it to config.json."""
        result = runner.invoke(cli, ["config", "wifi_only", "true"])
        assert result.exit_code == 0

        result = runner.invoke(cli, ["config", "wifi_only"])
        assert result.output.strip() == "wifi_only = True"
        assert json.loads((config_dir / "config.json").read_text()) == {"wifi_only": True}

    def test_unknown_setting(self, runner: CliRunner, config_dir: Path) -> None:
        result = runner.invoke(cli, ["config", "sync_folder", "/tmp"])

        assert result.exit_code == 1
        assert "Error: Unknown setting" in result.output

    def test_invalid_value_is_not_saved(self, runner: CliRunner, config_dir: Path) -> None:
        result = runner.invoke(cli, ["config", "week_start_day", "Friday"])

        assert result.exit_code == 1
        assert not (config_dir / "config.json").exists()

    def test_invalid_number(self, runner: CliRunner, config_dir: Path) -> None:
        result = runner.invoke(cli, ["config", "auto_sync_interval_minutes", "soon"])

        assert result.exit_code == 1


class TestLogCommand:
    """Tests for 'mindsync log'."""

    def test_log_today(self, runner: CliRunner, config_dir: Path, keyring: MagicMock) -> None:
        today = today_str()

        runner.invoke(cli, ["log", "berries"])
        result = runner.invoke(cli, ["log", "berries", "-n", "2"])

        assert result.exit_code == 0
        assert result.output.strip() == f"berries: 3 on {today}, 3 this week"
        assert (config_dir / "state.db").exists()

    def test_counts_never_go_negative(
        self, runner: CliRunner, config_dir: Path, keyring: MagicMock
    ) -> None:
        result = runner.invoke(cli, ["log", "nuts", "--count=-4"])

        assert result.exit_code == 0
        assert result.output.startswith("nuts: 0 on ")

    def test_invalid_date(self, runner: CliRunner, config_dir: Path, keyring: MagicMock) -> None:
        result = runner.invoke(cli, ["log", "beans", "--date", "tomorrow"])

        assert result.exit_code == 1
        assert "Invalid date" in result.output

    def test_date_outside_week(
        self, runner: CliRunner, config_dir: Path, keyring: MagicMock
    ) -> None:
        result = runner.invoke(cli, ["log", "beans", "--date", "2001-01-01"])

        assert result.exit_code == 1
        assert "outside the current week" in result.output


class TestTargetCommand:
    """Tests for 'mindsync target'."""

    def test_no_targets(self, runner: CliRunner, config_dir: Path, keyring: MagicMock) -> None:
        result = runner.invoke(cli, ["target"])

        assert result.output.strip() == "No targets set."

    def test_set_show_and_remove(
        self, runner: CliRunner, config_dir: Path, keyring: MagicMock
    ) -> None:
        runner.invoke(cli, ["target", "berries", "2"])
        runner.invoke(cli, ["target", "greens", "6"])

        result = runner.invoke(cli, ["target"])
        assert result.output.splitlines() == [
            f"{'berries':<20} 2 per week",
            f"{'greens':<20} 6 per week",
        ]

        result = runner.invoke(cli, ["target", "fish"])
        assert result.output.strip() == "No target for fish."

        runner.invoke(cli, ["target", "berries", "0"])
        result = runner.invoke(cli, ["target", "berries"])
        assert result.output.strip() == "No target for berries."


class TestStatusCommand:
    """Tests for 'mindsync status'."""

    def test_fresh_install(self, runner: CliRunner, config_dir: Path, keyring: MagicMock) -> None:
        result = runner.invoke(cli, ["status"])

        assert result.exit_code == 0
        assert "Provider:      gdrive" in result.output
        assert "Connection:    not connected" in result.output
        assert "Last sync:     never" in result.output
        assert "Pending:       no" in result.output
        assert "(never synced)" in result.output

    def test_pending_changes(
        self, runner: CliRunner, config_dir: Path, keyring: MagicMock
    ) -> None:
        runner.invoke(cli, ["log", "olive_oil"])

        result = runner.invoke(cli, ["status"])

        assert "Pending:       yes" in result.output
        assert "This week:" in result.output
        assert "olive_oil" in result.output


class TestSyncCommand:
    """Tests for 'mindsync sync'."""

    def test_requires_connection(
        self, runner: CliRunner, config_dir: Path, keyring: MagicMock
    ) -> None:
        """Without credentials the sync stops and a pending authorization is kept."""
        result = runner.invoke(cli, ["sync"])

        assert result.exit_code == 1
        assert "mindsync connect" in result.output
        keys = [c.args[1] for c in keyring.set_password.call_args_list]
        assert keys == ["gdrive:pending"]

    def test_resume_without_pending(
        self, runner: CliRunner, config_dir: Path, keyring: MagicMock
    ) -> None:
        result = runner.invoke(cli, ["connect", "--resume", "code"])

        assert result.exit_code == 1
        assert "No pending authorization" in result.output
