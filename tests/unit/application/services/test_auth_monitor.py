"""Tests for the scraping session auth monitor."""

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

from songscout.application.services import AuthMonitor
from songscout.domain.entities import CookieSource


class TestAuthMonitor:
    """Tests for AuthMonitor."""

    def test_fresh_monitor_is_healthy_but_never_succeeded(self, tmp_path: Path) -> None:
        """No file yet: healthy, zero failures, no success recorded."""
        monitor = AuthMonitor(tmp_path / "auth.json")
        assert monitor.is_healthy() is True
        assert monitor.has_ever_succeeded() is False
        assert monitor.get_status().consecutive_failures == 0

    def test_failures_then_success_resets(self, tmp_path: Path) -> None:
        """Three failures make it unhealthy; one success clears the counter."""
        monitor = AuthMonitor(tmp_path / "auth.json")
        for _ in range(3):
            monitor.record_failure(http_status=401)
        assert monitor.get_status().consecutive_failures == 3
        assert monitor.is_healthy() is False

        monitor.record_success(CookieSource.SECRET)

        status = monitor.get_status()
        assert status.consecutive_failures == 0
        assert status.last_error is None
        assert status.cookie_source == CookieSource.SECRET
        assert monitor.is_healthy() is True
        assert monitor.has_ever_succeeded() is True

    def test_diagnostic_contents(self, tmp_path: Path) -> None:
        """The diagnostic names the status, the count and the remediation steps."""
        monitor = AuthMonitor(tmp_path / "auth.json")
        monitor.record_failure(http_status=401)
        monitor.record_failure(http_status=401)
        diagnostic = monitor.record_failure(http_status=401)

        assert "401 Unauthorized" in diagnostic
        assert "3 consecutive failure(s)" in diagnostic
        assert "Last successful auth: never" in diagnostic
        assert "Recommended actions:" in diagnostic
        assert "multiple consecutive failures" in diagnostic

    def test_state_survives_restart(self, tmp_path: Path) -> None:
        """A new monitor reads the JSON file the old one wrote."""
        path = tmp_path / "auth.json"
        AuthMonitor(path).record_failure(message="login wall")

        restarted = AuthMonitor(path)
        assert restarted.get_status().consecutive_failures == 1
        assert restarted.get_status().last_error == "login wall"
        assert json.loads(path.read_text())["consecutiveFailures"] == 1

    def test_corrupt_file_starts_fresh(self, tmp_path: Path) -> None:
        """Garbage in the status file is ignored."""
        path = tmp_path / "auth.json"
        path.write_text("{not json")
        assert AuthMonitor(path).get_status().consecutive_failures == 0

    def test_expired_cookies_are_unhealthy(self, tmp_path: Path) -> None:
        """A success with an expiry in the past doesn't count as healthy."""
        monitor = AuthMonitor(tmp_path / "auth.json")
        monitor.record_success(CookieSource.FILE, expiry=datetime.now(UTC) - timedelta(hours=1))
        assert monitor.is_healthy() is False

    def test_operator_reset(self, tmp_path: Path) -> None:
        """reset_failure_count clears the counter without faking a success."""
        monitor = AuthMonitor(tmp_path / "auth.json")
        monitor.record_failure(http_status=403)
        monitor.reset_failure_count()
        assert monitor.get_status().consecutive_failures == 0
        assert monitor.has_ever_succeeded() is False
