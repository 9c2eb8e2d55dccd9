"""Tests for the credential vault (encrypted tokens and session cookies)."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from songscout.application.services import CredentialVault
from songscout.config import SpotifySettings, VaultSettings
from songscout.domain.entities import CookieSource
from songscout.domain.exceptions import ConfigurationMissingError, VaultError
from songscout.infrastructure.integrations.spotify_client import SpotifyClient
from songscout.infrastructure.persistence import Database, EncryptedTokenRepository

KEY = "v" * 32


def _vault(
    database: Database,
    tmp_path: Path,
    cookies_json: str = "",
    key: str = KEY,
) -> tuple[CredentialVault, MagicMock]:
    spotify_client = MagicMock(spec=SpotifyClient)
    spotify_client.refresh_token = AsyncMock()
    vault = CredentialVault(
        SpotifySettings(cookies_json=cookies_json, cookies_file=tmp_path / "cookies.json"),
        VaultSettings(encryption_key=key),
        database.session_scope,
        spotify_client,
    )
    return vault, spotify_client


class TestTokens:
    """Tests for the encrypted token lifecycle."""

    async def test_tokens_are_stored_encrypted(self, database: Database, tmp_path: Path) -> None:
        """The database never sees plaintext; load() decrypts."""
        vault, _ = _vault(database, tmp_path)
        await vault.store("access-1", "refresh-1", 3600)

        async with database.session_scope() as session:
            raw = await EncryptedTokenRepository(session).get()
        assert raw is not None
        assert "access-1" not in raw.access_token_encrypted

        token = await vault.load()
        assert token is not None
        assert token.access_token == "access-1"
        assert token.refresh_token == "refresh-1"

    async def test_valid_token_is_returned_without_refresh(
        self, database: Database, tmp_path: Path
    ) -> None:
        """An hour left means no refresh call."""
        vault, spotify_client = _vault(database, tmp_path)
        await vault.store("access-1", "refresh-1", 3600)
        assert await vault.get_access_token() == "access-1"
        spotify_client.refresh_token.assert_not_awaited()

    async def test_expiring_token_is_refreshed(self, database: Database, tmp_path: Path) -> None:
        """Less than five minutes left triggers a refresh; the old refresh token is kept."""
        vault, spotify_client = _vault(database, tmp_path)
        await vault.store("access-1", "refresh-1", 60)
        spotify_client.refresh_token.return_value = {"access_token": "access-2", "expires_in": 3600}

        assert await vault.get_access_token() == "access-2"
        spotify_client.refresh_token.assert_awaited_once_with("refresh-1")
        token = await vault.load()
        assert token is not None
        assert token.refresh_token == "refresh-1"

    async def test_no_token_stored(self, database: Database, tmp_path: Path) -> None:
        """Before the OAuth flow ran there is nothing to hand out."""
        vault, _ = _vault(database, tmp_path)
        with pytest.raises(ConfigurationMissingError):
            await vault.get_access_token()

    async def test_missing_key_refuses_to_store(self, database: Database, tmp_path: Path) -> None:
        """No key, no storage; never plaintext."""
        vault, _ = _vault(database, tmp_path, key="")
        with pytest.raises(VaultError):
            await vault.store("access-1", "refresh-1", 3600)

    async def test_other_key_cannot_read(self, database: Database, tmp_path: Path) -> None:
        """Rotating the key without re-authorizing surfaces a VaultError."""
        vault, _ = _vault(database, tmp_path)
        await vault.store("access-1", "refresh-1", 3600)
        other, _ = _vault(database, tmp_path, key="w" * 32)
        with pytest.raises(VaultError):
            await other.load()


class TestSessionCookies:
    """Tests for load_session_cookies."""

    def test_secret_wins(self, database: Database, tmp_path: Path) -> None:
        """Cookies from the secret are used and their auth expiry reported."""
        cookies = [
            {"name": "sp_dc", "value": "x", "expirationDate": 1_900_000_000},
            {"name": "other", "value": "y", "expirationDate": 1_000},
        ]
        (tmp_path / "cookies.json").write_text(json.dumps([{"name": "sp_dc", "value": "file"}]))
        vault, _ = _vault(database, tmp_path, cookies_json=json.dumps(cookies))

        loaded = vault.load_session_cookies()

        assert loaded.source == CookieSource.SECRET
        assert len(loaded.cookies) == 2
        assert loaded.expiry is not None
        assert int(loaded.expiry.timestamp()) == 1_900_000_000

    def test_file_fallback_with_wrapper_object(self, database: Database, tmp_path: Path) -> None:
        """A {"cookies": [...]} export in the file is accepted."""
        (tmp_path / "cookies.json").write_text(
            json.dumps({"cookies": [{"name": "sp_dc", "value": "file"}]})
        )
        vault, _ = _vault(database, tmp_path, cookies_json="not json")

        loaded = vault.load_session_cookies()

        assert loaded.source == CookieSource.FILE
        assert loaded.cookies[0]["value"] == "file"
        assert loaded.expiry is None

    def test_nothing_configured(self, database: Database, tmp_path: Path) -> None:
        """No secret and no file gives empty cookies."""
        vault, _ = _vault(database, tmp_path)
        loaded = vault.load_session_cookies()
        assert loaded.cookies == []
        assert loaded.source == CookieSource.NONE
