"""Credential vault: encrypted catalog API tokens and scraping session cookies.

Hey future me - this replaces the old "global token + global cookie file" mess. ONE vault
per process, injected into whoever needs credentials:
- the catalog phase asks get_valid_client() and gets a client bound to a fresh token
- the credits scraper asks load_session_cookies() (via ISessionCookieProvider)
Tokens are only ever persisted encrypted (AES-256-GCM, see infrastructure/encryption.py).
If the key is missing or a blob fails its auth tag we raise VaultError - we NEVER fall
back to "just use it unencrypted".
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from songscout.config import SpotifySettings, VaultSettings
from songscout.domain.entities import CookieSource, EncryptedToken
from songscout.domain.exceptions import ConfigurationMissingError
from songscout.domain.ports import ISessionCookieProvider, SessionCookies
from songscout.infrastructure.encryption import TokenCipher
from songscout.infrastructure.integrations.spotify_client import (
    SpotifyCatalogClient,
    SpotifyClient,
)
from songscout.infrastructure.persistence import EncryptedTokenRepository, SessionScope

logger = logging.getLogger(__name__)

# Refresh when the access token has less than this left
REFRESH_MARGIN = timedelta(minutes=5)
# Cookies that carry the logged-in session; their expiry is the session's expiry
AUTH_COOKIE_NAMES = ("sp_dc", "sp_key")


@dataclass
class StoredToken:
    """Decrypted token pair (lives in memory only)."""

    access_token: str
    refresh_token: str
    expires_at: datetime

    def expires_within(self, margin: timedelta, now: datetime | None = None) -> bool:
        """Check whether the access token expires within margin."""
        return self.expires_at - (now or datetime.now(UTC)) <= margin


def cookie_expiry(cookies: list[dict[str, Any]]) -> datetime | None:
    """Earliest expiry of the auth cookies (None when they are session cookies)."""
    expiries: list[datetime] = []
    for cookie in cookies:
        if cookie.get("name") not in AUTH_COOKIE_NAMES:
            continue
        raw = cookie.get("expires", cookie.get("expirationDate"))
        try:
            seconds = float(raw) if raw is not None else 0.0
        except (TypeError, ValueError):
            continue
        if seconds > 0:
            expiries.append(datetime.fromtimestamp(seconds, tz=UTC))
    return min(expiries) if expiries else None


class CredentialVault(ISessionCookieProvider):
    """Owns the catalog API token lifecycle and the scraping session cookies."""

    def __init__(
        self,
        spotify_settings: SpotifySettings,
        vault_settings: VaultSettings,
        session_scope: SessionScope,
        spotify_client: SpotifyClient,
        cipher: TokenCipher | None = None,
    ) -> None:
        """Initialize the vault.

        Args:
            spotify_settings: Client credentials and cookie locations
            vault_settings: Key material for the token cipher
            session_scope: Transactional DB session factory
            spotify_client: Low-level API client used for refreshes
            cipher: Token cipher (built from vault_settings on first use if None)
        """
        self.spotify_settings = spotify_settings
        self.vault_settings = vault_settings
        self.session_scope = session_scope
        self.spotify_client = spotify_client
        self._cipher = cipher
        self._refresh_lock = asyncio.Lock()

    @property
    def cipher(self) -> TokenCipher:
        """Token cipher; raises VaultError when no key is configured."""
        if self._cipher is None:
            self._cipher = TokenCipher(self.vault_settings.secret())
        return self._cipher

    async def store(self, access_token: str, refresh_token: str, expires_in_seconds: int) -> None:
        """Encrypt and persist a token pair."""
        expires_at = datetime.now(UTC) + timedelta(seconds=expires_in_seconds)
        token = EncryptedToken(
            access_token_encrypted=self.cipher.encrypt(access_token),
            refresh_token_encrypted=self.cipher.encrypt(refresh_token),
            expires_at=expires_at,
        )
        async with self.session_scope() as session:
            await EncryptedTokenRepository(session).save(token)
        logger.info(f"Stored catalog API tokens (expires {expires_at.isoformat()})")

    async def load(self) -> StoredToken | None:
        """Load and decrypt the stored token pair.

        Raises:
            VaultError: Key missing or blob corrupt/tampered
        """
        async with self.session_scope() as session:
            encrypted = await EncryptedTokenRepository(session).get()
        if encrypted is None:
            return None
        return StoredToken(
            access_token=self.cipher.decrypt(encrypted.access_token_encrypted),
            refresh_token=self.cipher.decrypt(encrypted.refresh_token_encrypted),
            expires_at=encrypted.expires_at,
        )

    # Hey future me - the lock makes concurrent phases share ONE refresh instead of racing
    # Spotify with the same refresh token (a rotated token would invalidate the loser).
    async def get_access_token(self) -> str:
        """Return a valid access token, refreshing it if it is about to expire.

        Raises:
            ConfigurationMissingError: No token stored yet
            AuthExpiredError: The refresh was rejected
            VaultError: Stored tokens cannot be decrypted
        """
        async with self._refresh_lock:
            token = await self.load()
            if token is None:
                raise ConfigurationMissingError(
                    "No catalog API token stored. Run the OAuth authorization first.",
                    "spotify",
                )
            if not token.expires_within(REFRESH_MARGIN):
                return token.access_token

            logger.info("Catalog API token expires soon, refreshing")
            data = await self.spotify_client.refresh_token(token.refresh_token)
            # Spotify doesn't always rotate the refresh token - keep the old one then
            refresh_token = data.get("refresh_token") or token.refresh_token
            await self.store(
                data["access_token"], refresh_token, int(data.get("expires_in", 3600))
            )
            return str(data["access_token"])

    async def get_valid_client(self) -> SpotifyCatalogClient:
        """Catalog client bound to a currently valid access token."""
        return SpotifyCatalogClient(self.spotify_client, await self.get_access_token())

    def load_session_cookies(self) -> SessionCookies:
        """Load browser cookies: the configured secret first, then the cookies file.

        A malformed secret or file is logged and treated as absent, so the credits phase
        reports ConfigurationMissing instead of crashing the job.
        """
        secret = self.spotify_settings.cookies_json.get_secret_value().strip()
        if secret:
            cookies = self._parse_cookies(secret, "cookies secret")
            if cookies:
                return SessionCookies(cookies, CookieSource.SECRET, cookie_expiry(cookies))

        path = self.spotify_settings.cookies_file
        if path.exists():
            try:
                text = path.read_text(encoding="utf-8")
            except OSError as e:
                logger.warning(f"Could not read cookies file {path}: {e}")
                text = ""
            cookies = self._parse_cookies(text, str(path)) if text else []
            if cookies:
                return SessionCookies(cookies, CookieSource.FILE, cookie_expiry(cookies))

        return SessionCookies()

    @staticmethod
    def _parse_cookies(text: str, origin: str) -> list[dict[str, Any]]:
        try:
            data = json.loads(text)
        except ValueError as e:
            logger.warning(f"Session cookies in {origin} are not valid JSON: {e}")
            return []
        # Some exporters wrap the list as {"cookies": [...]}
        if isinstance(data, dict):
            data = data.get("cookies")
        if not isinstance(data, list):
            logger.warning(f"Session cookies in {origin} are not a JSON list")
            return []
        return [c for c in data if isinstance(c, dict) and c.get("name") and "value" in c]
