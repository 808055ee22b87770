"""Tests for the pogo-update CLI."""

from __future__ import annotations

import json
import tempfile
from collections.abc import Iterator
from pathlib import Path

import pytest
from typer.testing import CliRunner

from pogo_core import cli as cli_module
from pogo_core import config
from pogo_core.cli import cli
from pogo_core.config import Settings

from fakes import FakeFeed

runner = CliRunner()


class ClosingFeed(FakeFeed):
    """Fake feed with the close hook the CLI calls on exit."""

    def __init__(self) -> None:
        super().__init__()
        self.closed = False

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def feed_factory(monkeypatch: pytest.MonkeyPatch) -> Iterator[list[ClosingFeed]]:
    """Point the CLI at a temporary database and hand it fake feeds."""
    created: list[ClosingFeed] = []

    def factory(settings: Settings) -> ClosingFeed:
        feed = ClosingFeed()
        created.append(feed)
        return feed

    with tempfile.TemporaryDirectory() as tmpdir:
        settings = Settings(db_path=Path(tmpdir) / "cli.sqlite", log_level="ERROR")
        monkeypatch.setattr(config, "_settings", settings)
        monkeypatch.setattr(cli_module, "GitHubFeedClient", factory)
        yield created


class TestCliHelp:
    """Tests for CLI help and basic functionality."""

    def test_cli_help(self) -> None:
        """CLI should list its commands."""
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Pokemon GO data updates" in result.stdout
        for command in ("status", "history", "force", "check", "run", "serve"):
            assert command in result.stdout

    def test_cli_no_args_shows_help(self) -> None:
        """CLI should show help when invoked with no args (exit code 0 or 2 both acceptable)."""
        result = runner.invoke(cli)
        assert result.exit_code in (0, 2)
        assert "Pokemon GO data updates" in result.stdout


class TestUpdateCommands:
    """status, history, force and check against a temporary store."""

    def test_status_json(self, feed_factory: list[ClosingFeed]) -> None:
        result = runner.invoke(cli, ["status", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert {s["id"] for s in data["sources"]} == {
            "pvpoke-gamemaster",
            "pvpoke-rankings",
            "pokemon-resources",
            "dialgadex-data",
        }
        assert data["queue_depth"] == 0
        assert feed_factory[0].closed

    def test_history_empty(self, feed_factory: list[ClosingFeed]) -> None:
        result = runner.invoke(cli, ["history"])
        assert result.exit_code == 0
        assert "No updates recorded yet" in result.stdout

    def test_history_unknown_source(self, feed_factory: list[ClosingFeed]) -> None:
        result = runner.invoke(cli, ["history", "-s", "nope"])
        assert result.exit_code == 1
        assert "nope" in result.stdout

    def test_force_then_history(self, feed_factory: list[ClosingFeed]) -> None:
        result = runner.invoke(cli, ["force", "--json"])
        assert result.exit_code == 0
        tasks = json.loads(result.stdout)
        assert [t["source_id"] for t in tasks] == [
            "pvpoke-gamemaster",
            "pvpoke-rankings",
            "pokemon-resources",
        ]
        assert {t["status"] for t in tasks} == {"completed"}

        result = runner.invoke(cli, ["history", "--json", "-s", "pvpoke-gamemaster"])
        assert result.exit_code == 0
        records = json.loads(result.stdout)
        assert len(records) == 1
        assert records[0]["version_marker"] == "pvpoke-gamemaster-v1"

    def test_force_exits_nonzero_on_failure(
        self, monkeypatch: pytest.MonkeyPatch, feed_factory: list[ClosingFeed]
    ) -> None:
        def failing(settings: Settings) -> ClosingFeed:
            feed = ClosingFeed()
            feed.fetch_errors["pvpoke-rankings"] = RuntimeError("boom")
            return feed

        monkeypatch.setattr(cli_module, "GitHubFeedClient", failing)
        result = runner.invoke(cli, ["force", "--json"])
        assert result.exit_code == 1
        tasks = {t["source_id"]: t for t in json.loads(result.stdout)}
        assert tasks["pvpoke-rankings"]["status"] == "failed"
        assert tasks["pvpoke-rankings"]["error_message"] == "boom"
        assert tasks["pvpoke-gamemaster"]["status"] == "completed"

    def test_check_reports_new_version(self, feed_factory: list[ClosingFeed]) -> None:
        result = runner.invoke(cli, ["check", "pvpoke-gamemaster"])
        assert result.exit_code == 0
        assert "pvpoke-gamemaster has a new version" in result.stdout

    def test_check_with_update_then_up_to_date(self, feed_factory: list[ClosingFeed]) -> None:
        result = runner.invoke(cli, ["check", "pvpoke-gamemaster", "--update"])
        assert result.exit_code == 0
        assert "Update Results" in result.stdout

        result = runner.invoke(cli, ["check", "pvpoke-gamemaster"])
        assert result.exit_code == 0
        assert "pvpoke-gamemaster is up to date" in result.stdout

    def test_check_unknown_source(self, feed_factory: list[ClosingFeed]) -> None:
        result = runner.invoke(cli, ["check", "nope"])
        assert result.exit_code == 1
