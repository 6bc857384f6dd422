"""Unit tests for the keyring-backed credential store."""

from __future__ import annotations

import pytest
from keyring.errors import KeyringError, PasswordDeleteError

from sag.credentials import KeyringCredentialStore, account_name_for, create_credential_store
from sag.errors import ConfigurationError, ValidationError
from sag.models import Provider


class MemoryBackend:
    """In-memory keyring backend for deterministic credential store tests."""

    def __init__(self, *, failing: bool = False) -> None:
        self.storage: dict[tuple[str, str], str] = {}
        self._failing = failing

    def get_password(self, service_name: str, account_name: str) -> str | None:
        if self._failing:
            raise KeyringError("no backend")
        return self.storage.get((service_name, account_name))

    def set_password(self, service_name: str, account_name: str, value: str) -> None:
        if self._failing:
            raise KeyringError("no backend")
        self.storage[(service_name, account_name)] = value

    def delete_password(self, service_name: str, account_name: str) -> None:
        if (service_name, account_name) not in self.storage:
            raise PasswordDeleteError("not found")
        del self.storage[(service_name, account_name)]


def test_keyring_store_roundtrip_set_get_clear() -> None:
    """The store should set, read, and clear a key through its backend."""

    backend = MemoryBackend()
    store = KeyringCredentialStore(account_name="elevenlabs_api_key", backend=backend)

    assert store.is_available() is True
    assert store.get_api_key() is None

    store.set_api_key("  abc123  ")
    assert store.get_api_key() == "abc123"
    assert backend.storage == {("sag", "elevenlabs_api_key"): "abc123"}

    assert store.clear_api_key() is True
    assert store.get_api_key() is None
    assert store.clear_api_key() is False


def test_keyring_store_keeps_provider_keys_separate() -> None:
    """ElevenLabs and MiniMax keys should live under different accounts."""

    backend = MemoryBackend()
    elevenlabs = create_credential_store(Provider.ELEVENLABS)
    minimax = create_credential_store(Provider.MINIMAX)
    elevenlabs.backend = backend
    minimax.backend = backend

    elevenlabs.set_api_key("el-key")

    assert minimax.get_api_key() is None
    assert account_name_for(Provider.MINIMAX) == "minimax_api_key"
    assert minimax.account_name == "minimax_api_key"


def test_default_backend_without_keyring_is_unavailable() -> None:
    """With only keyring's fail backend the store should report no key and refuse writes."""

    store = create_credential_store()

    assert store.is_available() is False
    assert store.get_api_key() is None
    assert store.clear_api_key() is False
    with pytest.raises(ConfigurationError, match="no keyring backend"):
        store.set_api_key("abc")


def test_keyring_store_backend_failures() -> None:
    """Backend errors should read as no key and fail loudly on write."""

    store = KeyringCredentialStore(account_name="elevenlabs_api_key", backend=MemoryBackend(failing=True))

    assert store.get_api_key() is None
    with pytest.raises(ConfigurationError, match="failed to store API key securely: no backend"):
        store.set_api_key("abc")


def test_keyring_store_rejects_blank_keys() -> None:
    """Blank keys should be rejected before touching the backend."""

    backend = MemoryBackend()
    store = KeyringCredentialStore(account_name="elevenlabs_api_key", backend=backend)

    with pytest.raises(ValidationError, match="non-empty"):
        store.set_api_key("   ")
    assert backend.storage == {}


def test_blank_stored_value_reads_as_missing() -> None:
    """Whitespace-only entries should not count as a stored key."""

    backend = MemoryBackend()
    backend.storage[("sag", "minimax_api_key")] = "   "
    store = create_credential_store(Provider.MINIMAX)
    store.backend = backend

    assert store.get_api_key() is None
