from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from redis_key_browser import __version__
from redis_key_browser import cli as cli_mod
from redis_key_browser.cli import _load_default_fixture_text, app
from redis_key_browser.store.base import StoreConnectionError
from redis_key_browser.store.redis_client import RedisStore


def test_version_prints_version() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_browse_help_lists_connection_options() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["browse", "--help"])
    assert result.exit_code == 0
    for option in ("--host", "--port", "--password", "--db", "--url", "--dry-run"):
        assert option in result.stdout


def test_default_fixture_is_packaged() -> None:
    text, source = _load_default_fixture_text()
    assert text is not None
    assert source is not None
    data = json.loads(text)
    assert "app:config" in data["keys"]


def test_keys_prints_fixture_keys(fixture_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["keys", "--fixture", str(fixture_path)])
    assert result.exit_code == 0, result.output
    assert result.stdout.splitlines() == [
        "user:1",
        "user:2",
        "queue:jobs",
        "tags",
        "board",
        "gone",
        "slow",
    ]


def test_keys_filter_is_case_insensitive(fixture_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["keys", "--fixture", str(fixture_path), "--filter", "USER"])
    assert result.exit_code == 0, result.output
    assert result.stdout.splitlines() == ["user:1", "user:2"]


def test_keys_dry_run_uses_demo_fixture() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["keys", "--dry-run", "-f", "user:"])
    assert result.exit_code == 0, result.output
    assert result.stdout.splitlines() == [
        "user:1000:name",
        "user:1001:name",
        "user:9999:name",
    ]


def test_browse_without_tty_prints_summary(fixture_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["browse", "--fixture", str(fixture_path)])
    assert result.exit_code == 0
    assert "Browse UI requires a TTY terminal." in result.stderr
    assert "queue:jobs" in result.stderr
    assert "fixture:keys.json" in result.stderr


def test_browse_missing_fixture_exits_2(tmp_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["browse", "--fixture", str(tmp_path / "nope.json")])
    assert result.exit_code == 2
    assert "Fixture not found" in result.stderr


def test_browse_invalid_fixture_exits_2(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text('{"keys": {"k": {"type": "stream"}}}', encoding="utf-8")
    runner = CliRunner()
    result = runner.invoke(app, ["browse", "--fixture", str(path)])
    assert result.exit_code == 2
    assert "Invalid fixture" in result.stderr


def test_browse_connection_failure_exits_1(monkeypatch: pytest.MonkeyPatch) -> None:
    def _refuse(_self: RedisStore) -> list[str]:
        raise StoreConnectionError("SCAN: Connection refused")

    monkeypatch.setattr(cli_mod.RedisStore, "list_keys", _refuse)
    runner = CliRunner()
    result = runner.invoke(
        app, ["browse", "--url", "redis://:hunter2@db.example:6390/4"]
    )
    assert result.exit_code == 1
    assert "Connection failed" in result.stderr
    assert "redis://db.example:6390/4" in result.stderr
    assert "hunter2" not in result.stderr


def test_keys_with_unsupported_url_scheme_exits_1() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["keys", "--url", "http://localhost:1/0"])
    assert result.exit_code == 1
    assert not isinstance(result.exception, ValueError)
    assert "Connection failed: Invalid connection URL" in result.stderr


def test_browse_reads_connection_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[str] = []

    def _refuse(self: RedisStore) -> list[str]:
        seen.append(self.config.endpoint)
        raise StoreConnectionError("refused")

    monkeypatch.setattr(cli_mod.RedisStore, "list_keys", _refuse)
    runner = CliRunner()
    result = runner.invoke(app, ["browse"], env={"RKB_HOST": "cache.local", "RKB_DB": "5"})
    assert result.exit_code == 1
    assert seen == ["redis://cache.local:6379/5"]


def test_browse_rejects_out_of_range_port() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["browse", "--port", "70000"])
    assert result.exit_code == 2
