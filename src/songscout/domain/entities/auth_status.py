"""Scraping session auth health state."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class CookieSource(str, Enum):
    """Where the scraping session cookies were loaded from."""

    SECRET = "secret"
    FILE = "file"
    NONE = "none"


@dataclass
class AuthStatus:
    """Process-wide auth state, persisted as JSON.

    Keys in the JSON file are camelCase so the file stays readable by the
    cookie export tooling that writes cookieExpiry next to it.
    """

    last_successful_auth: datetime | None = None
    last_failed_auth: datetime | None = None
    consecutive_failures: int = 0
    cookie_source: CookieSource = CookieSource.NONE
    cookie_expiry: datetime | None = None
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the JSON status file."""
        return {
            "lastSuccessfulAuth": _iso(self.last_successful_auth),
            "lastFailedAuth": _iso(self.last_failed_auth),
            "consecutiveFailures": self.consecutive_failures,
            "cookieSource": self.cookie_source.value,
            "cookieExpiry": _iso(self.cookie_expiry),
            "lastError": self.last_error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuthStatus":
        """Deserialize from the JSON status file (unknown keys ignored)."""
        return cls(
            last_successful_auth=_parse(data.get("lastSuccessfulAuth")),
            last_failed_auth=_parse(data.get("lastFailedAuth")),
            consecutive_failures=int(data.get("consecutiveFailures") or 0),
            cookie_source=CookieSource(data.get("cookieSource") or CookieSource.NONE.value),
            cookie_expiry=_parse(data.get("cookieExpiry")),
            last_error=data.get("lastError"),
        )


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse(value: str | None) -> datetime | None:
    if not value:
        return None
    # fromisoformat only learned the trailing "Z" in 3.11
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
