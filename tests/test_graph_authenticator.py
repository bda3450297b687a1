"""
Tests for the Graph authenticator setup and its token cache storage.
"""

import json

import pytest
from keyring.errors import KeyringError

from slotbook.adapters import graph_authenticator
from slotbook.adapters.graph_authenticator import KEYRING_SERVICE_NAME, GraphAuthenticator
from slotbook.domain.exceptions import AuthenticationError


class FakePublicClientApplication:
    """Stands in for msal.PublicClientApplication; always has a cached token."""

    def __init__(self, client_id, authority, token_cache):
        self.client_id = client_id
        self.authority = authority
        self.token_cache = token_cache

    def get_accounts(self):
        return [{"username": "provider@example.com"}]

    def acquire_token_silent(self, scopes, account):
        return {"access_token": "cached-token"}


class BrokenKeyring:
    def get_password(self, service, key):
        raise KeyringError("no backend")

    def set_password(self, service, key, value):
        raise KeyringError("no backend")


class MemoryKeyring:
    def __init__(self):
        self.passwords = {}

    def get_password(self, service, key):
        return self.passwords.get((service, key))

    def set_password(self, service, key, value):
        self.passwords[(service, key)] = value


@pytest.fixture
def fake_msal(monkeypatch):
    monkeypatch.setattr(graph_authenticator.msal, "PublicClientApplication", FakePublicClientApplication)


def _use_keyring(monkeypatch, backend):
    monkeypatch.setattr(graph_authenticator.keyring, "get_password", backend.get_password)
    monkeypatch.setattr(graph_authenticator.keyring, "set_password", backend.set_password)


class TestGraphAuthenticator:

    @pytest.mark.parametrize("client_id, tenant_id", [("", "tenant"), ("client", ""), ("", "")])
    def test_missing_registration_is_rejected(self, client_id, tenant_id):
        with pytest.raises(AuthenticationError):
            GraphAuthenticator(client_id=client_id, tenant_id=tenant_id)


class TestTokenCacheStorage:
    """Token cache goes to the keyring, or to a private file when it fails."""

    def test_broken_keyring_falls_back_to_private_file(self, monkeypatch, tmp_path, fake_msal):
        _use_keyring(monkeypatch, BrokenKeyring())
        cache_file = tmp_path / "cache.json"

        authenticator = GraphAuthenticator("client", "tenant", cache_file=cache_file)
        assert authenticator.cache_backend == "file"

        authenticator.cache.has_state_changed = True
        assert authenticator.get_access_token() == "cached-token"

        assert cache_file.exists()
        assert cache_file.stat().st_mode & 0o777 == 0o600

    def test_existing_file_is_loaded_when_keyring_fails(self, monkeypatch, tmp_path, fake_msal):
        _use_keyring(monkeypatch, BrokenKeyring())
        cache_file = tmp_path / "cache.json"
        cache_file.write_text(json.dumps({"Account": {"key": {"home_account_id": "home"}}}))

        authenticator = GraphAuthenticator("client", "tenant", cache_file=cache_file)

        assert "home" in authenticator.cache.serialize()

    def test_working_keyring_stores_cache_without_file(self, monkeypatch, tmp_path, fake_msal):
        backend = MemoryKeyring()
        _use_keyring(monkeypatch, backend)
        cache_file = tmp_path / "cache.json"

        authenticator = GraphAuthenticator("client", "tenant", cache_file=cache_file)
        authenticator.cache.has_state_changed = True
        authenticator.get_access_token()

        assert authenticator.cache_backend == "keyring"
        assert (KEYRING_SERVICE_NAME, "client:tenant") in backend.passwords
        assert not cache_file.exists()

    def test_unchanged_cache_is_not_written(self, monkeypatch, tmp_path, fake_msal):
        backend = MemoryKeyring()
        _use_keyring(monkeypatch, backend)

        authenticator = GraphAuthenticator("client", "tenant", cache_file=tmp_path / "cache.json")
        authenticator.cache.has_state_changed = False
        authenticator.get_access_token()

        assert backend.passwords == {}
