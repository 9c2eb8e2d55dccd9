"""Auth health monitor for the scraping session.

Hey future me - this is the ONE place that knows whether the streaming session cookies still
work. The credits scraper reports every session-bound navigation here. A failure prints a
big remediation block (re-export cookies, update the secret, restart) because nobody reads
a one-line warning buried in a worker log. State lives in a small JSON file so a restart
doesn't forget that the session died at 3am.
"""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from songscout.domain.entities import AuthStatus, CookieSource
from songscout.domain.ports import IAuthMonitor

logger = logging.getLogger(__name__)

# Failures in a row before the diagnostic adds the "refresh them NOW" warning
REPEATED_FAILURE_THRESHOLD = 3
_RULE = "=" * 70


class AuthMonitor(IAuthMonitor):
    """Tracks scraping session health, persisted to a JSON status file."""

    def __init__(self, status_path: Path) -> None:
        """Load the persisted status (a missing or corrupt file starts fresh).

        Args:
            status_path: JSON file the status survives restarts in
        """
        self.status_path = status_path
        self._status = self._load()

    def _load(self) -> AuthStatus:
        if not self.status_path.exists():
            return AuthStatus()
        try:
            data = json.loads(self.status_path.read_text(encoding="utf-8"))
            return AuthStatus.from_dict(data)
        except (OSError, ValueError, TypeError) as e:
            logger.warning(f"Could not load auth status from {self.status_path}: {e}")
            return AuthStatus()

    def _save(self) -> None:
        # A status file we can't write must never break the scrape that reported it
        try:
            self.status_path.parent.mkdir(parents=True, exist_ok=True)
            self.status_path.write_text(
                json.dumps(self._status.to_dict(), indent=2), encoding="utf-8"
            )
        except OSError as e:
            logger.warning(f"Could not save auth status to {self.status_path}: {e}")

    def record_success(self, source: CookieSource, expiry: datetime | None = None) -> None:
        """Reset the failure counter after a session-bound call worked."""
        previous_failures = self._status.consecutive_failures
        self._status.last_successful_auth = datetime.now(UTC)
        self._status.consecutive_failures = 0
        self._status.cookie_source = source
        self._status.cookie_expiry = expiry
        self._status.last_error = None
        self._save()

        if previous_failures:
            logger.info(
                f"Scraping session recovered after {previous_failures} failure(s) "
                f"(source: {source.value})"
            )
        else:
            logger.debug(f"Scraping session OK (source: {source.value})")

    def record_failure(self, http_status: int | None = None, message: str | None = None) -> str:
        """Count a failure and log the remediation diagnostic.

        Args:
            http_status: HTTP status of the rejected navigation, if any
            message: Free-text detail

        Returns:
            The diagnostic text (also logged at ERROR)
        """
        now = datetime.now(UTC)
        self._status.last_failed_auth = now
        self._status.consecutive_failures += 1
        self._status.last_error = message or (f"HTTP {http_status}" if http_status else None)
        self._save()

        diagnostic = self.build_diagnostic(http_status, message, now)
        logger.error(diagnostic)
        return diagnostic

    # Listen up, the diagnostic is plain text on purpose - it goes to the log, to the
    # AuthExpiredError message (so it lands in job errors) and to GET /api/auth/status.
    def build_diagnostic(
        self,
        http_status: int | None = None,
        message: str | None = None,
        now: datetime | None = None,
    ) -> str:
        """Operator-facing explanation of the current failure plus remediation steps."""
        now = now or datetime.now(UTC)
        status = self._status
        lines = [_RULE, "SPOTIFY SESSION AUTHENTICATION FAILED", _RULE]

        if http_status == 401:
            lines.append("Status: 401 Unauthorized - cookies expired or invalid")
        elif http_status == 403:
            lines.append("Status: 403 Forbidden - access denied (session blocked?)")
        elif message:
            lines.append(f"Error: {message}")

        lines.append(f"Failure count: {status.consecutive_failures} consecutive failure(s)")
        if status.last_successful_auth:
            hours = int((now - status.last_successful_auth).total_seconds() // 3600)
            lines.append(
                f"Last successful auth: {status.last_successful_auth.isoformat()} ({hours}h ago)"
            )
        else:
            lines.append("Last successful auth: never")

        if status.cookie_expiry:
            expired = " (EXPIRED)" if status.cookie_expiry < now else ""
            lines.append(f"Cookie expiry: {status.cookie_expiry.isoformat()}{expired}")

        lines.extend(
            [
                "",
                "Recommended actions:",
                "  1. Log in to the web player locally and export the session cookies",
                "  2. Update SPOTIFY__COOKIES_JSON (or the cookies file) with the new export",
                "  3. Restart the application",
            ]
        )
        if status.consecutive_failures >= REPEATED_FAILURE_THRESHOLD:
            lines.extend(
                [
                    "",
                    "WARNING: multiple consecutive failures detected!",
                    "The cookies are almost certainly expired. Refresh them immediately.",
                ]
            )
        lines.append(_RULE)
        return "\n".join(lines)

    def is_healthy(self) -> bool:
        """False after any failure or once the recorded cookie expiry has passed."""
        if self._status.consecutive_failures > 0:
            return False
        expiry = self._status.cookie_expiry
        return not (expiry is not None and expiry < datetime.now(UTC))

    def has_ever_succeeded(self) -> bool:
        """Whether a successful auth was ever recorded."""
        return self._status.last_successful_auth is not None

    def get_status(self) -> AuthStatus:
        """Copy of the current status."""
        return AuthStatus(**vars(self._status))

    def reset_failure_count(self) -> None:
        """Operator reset after fixing the cookies out-of-band."""
        self._status.consecutive_failures = 0
        self._status.last_error = None
        self._save()
        logger.info("Auth failure counter reset by operator")
