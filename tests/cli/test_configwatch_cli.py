from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from configwatch.infrastructure.observability import reset_metrics
from configwatch.infrastructure.observability.logging import ContextualFormatter
from configwatch.interfaces.cli import cli


@pytest.fixture(autouse=True)
def _detach_cli_log_handlers():
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        if isinstance(handler.formatter, ContextualFormatter):
            root.removeHandler(handler)


@pytest.fixture()
def settings_file(tmp_path: Path) -> Path:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "application.yml").write_text(
        "server:\n  port: 8080\n  host: localhost\ntimeout: 30\nretries: 3\nhosts:\n  - a\n  - b\n",
        encoding="utf-8",
    )
    (config_dir / "application-prod.yml").write_text("timeout: 60\n", encoding="utf-8")
    path = tmp_path / "configwatch.yaml"
    path.write_text(
        f"sources:\n  - kind: directory\n    location: {config_dir}\n    poll_interval_seconds: 30\n",
        encoding="utf-8",
    )
    return path


def test_show_json_merges_profiles(settings_file: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["--config", str(settings_file), "--profile", "prod", "show", "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["version"] == 1
    assert payload["profiles"] == ["default", "prod"]
    assert payload["values"]["timeout"] == 60
    assert payload["values"]["server"] == {"port": 8080, "host": "localhost"}


def test_show_table_lists_keys(settings_file: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["--config", str(settings_file), "show", "--no-origins"])

    assert result.exit_code == 0, result.output
    assert "server.port" in result.output
    assert "retries" in result.output


def test_get_with_type(settings_file: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(
        cli, ["--config", str(settings_file), "--profile", "prod", "get", "timeout", "--type", "integer"]
    )

    assert result.exit_code == 0, result.output
    assert result.output.strip() == "60"


def test_get_subtree_prints_json(settings_file: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["--config", str(settings_file), "get", "hosts"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == ["a", "b"]


def test_get_type_mismatch_and_missing_key(settings_file: Path) -> None:
    runner = CliRunner()

    mismatch = runner.invoke(cli, ["--config", str(settings_file), "get", "server.host", "--type", "integer"])
    missing = runner.invoke(cli, ["--config", str(settings_file), "get", "nope"])

    assert mismatch.exit_code == 1
    assert "server.host" in mismatch.output
    assert missing.exit_code == 1
    assert "Key not found" in missing.output


def test_sources_json(settings_file: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["--config", str(settings_file), "sources", "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload[0]["kind"] == "directory"
    assert payload[0]["poll_interval_seconds"] == 30
    assert payload[0]["credentials"] is False


def test_metrics_after_refresh(settings_file: Path) -> None:
    reset_metrics()
    runner = CliRunner()

    result = runner.invoke(cli, ["--config", str(settings_file), "metrics"])

    assert result.exit_code == 0, result.output
    assert 'configwatch_refresh_cycles_total{status="success"} 1.0' in result.output
    assert "configwatch_snapshot_version 1.0" in result.output


def test_watch_runs_bounded_cycles(settings_file: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(
        cli, ["--config", str(settings_file), "watch", "--interval", "0.01", "--cycles", "2"]
    )

    assert result.exit_code == 0, result.output
    assert "v0 -> v1" in result.output
    assert "Final version: 1" in result.output


def test_invalid_settings_file_reports_error(tmp_path: Path) -> None:
    path = tmp_path / "configwatch.yaml"
    path.write_text("sources:\n  - kind: vault\n    location: x\n", encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(cli, ["--config", str(path), "sources"])

    assert result.exit_code == 1
    assert "Invalid settings" in result.output


def test_refresh_failure_exits_non_zero(tmp_path: Path) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "application.yml").write_text("a: [broken\n", encoding="utf-8")
    path = tmp_path / "configwatch.yaml"
    path.write_text(f"sources:\n  - kind: directory\n    location: {config_dir}\n", encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(cli, ["--config", str(path), "show"])

    assert result.exit_code == 1
    assert "Configuration refresh failed" in result.output
