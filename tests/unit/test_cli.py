"""Tests for the operator command line."""

import json
from pathlib import Path

import pytest

from songscout import cli
from songscout.config import DatabaseSettings, Settings, VaultSettings


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    settings = Settings(
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"),
        vault=VaultSettings(auth_status_path=tmp_path / "auth.json"),
    )
    monkeypatch.setattr(cli, "get_settings", lambda: settings)
    # Log records go to stdout; keep it for the JSON result only
    monkeypatch.setattr(cli, "configure_logging", lambda **_: None)
    return settings


class TestParser:
    """Tests for build_parser."""

    def test_enrich_collects_repeated_ids(self) -> None:
        """--track-id can be given many times; --phase is validated."""
        args = cli.build_parser().parse_args(
            ["enrich", "--track-id", "a", "--track-id", "b", "--phase", "5", "--snapshot"]
        )
        assert args.track_ids == ["a", "b"]
        assert args.phase == 5
        assert args.snapshot is True

    def test_phase_out_of_range(self) -> None:
        """Only phases 1-5 exist."""
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["enrich", "--track-id", "a", "--phase", "7"])

    def test_command_required(self) -> None:
        """Bare invocation is an error."""
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_serve_defaults(self) -> None:
        """Host and port fall back to settings when omitted."""
        args = cli.build_parser().parse_args(["serve"])
        assert args.host is None
        assert args.port is None


class TestMain:
    """Tests for main() one-shot commands."""

    def test_auth_status(self, settings: Settings, capsys: pytest.CaptureFixture[str]) -> None:
        """Prints the persisted status as JSON."""
        assert cli.main(["auth-status"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["healthy"] is True
        assert data["consecutiveFailures"] == 0

    def test_add_playlist(
        self, settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """add-playlist stores the playlist in the configured database."""
        assert (
            cli.main(["add-playlist", "--playlist-id", "pl-1", "--name", "Fresh Finds"]) == 0
        )
        data = json.loads(capsys.readouterr().out)
        assert data["playlist_id"] == "pl-1"
        assert data["jobs_processed"] == 0
