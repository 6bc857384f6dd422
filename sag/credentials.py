"""Per-provider API key storage in the OS keyring.

Responsibilities:
- Keep one keyring entry per provider so ElevenLabs and MiniMax keys coexist.
- Report a missing or failing keyring backend as "no stored key" on reads and
  as a configuration error on writes.
- Never echo secret values in diagnostics.

Key types:
- `CredentialStore`: protocol consumed by the CLI commands.
- `KeyringCredentialStore`: `keyring`-backed implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

import keyring
from keyring.backends import fail
from keyring.errors import KeyringError, PasswordDeleteError

from .errors import ConfigurationError, ValidationError
from .models import Provider
from .parsing import normalize_optional_string


SERVICE_NAME = "sag"


def account_name_for(provider: Provider) -> str:
    """Return the keyring account name holding `provider`'s API key."""

    return f"{provider.value}_api_key"


class CredentialStore(Protocol):
    def is_available(self) -> bool: ...

    def get_api_key(self) -> str | None: ...

    def set_api_key(self, api_key: str) -> None: ...

    def clear_api_key(self) -> bool: ...


@dataclass
class KeyringCredentialStore:
    """Store one provider key under `(service_name, account_name)`.

    `backend` defaults to the process keyring chosen by `keyring` itself.
    """

    account_name: str
    service_name: str = SERVICE_NAME
    backend: Any = None

    def _keyring(self) -> Any:
        return self.backend if self.backend is not None else keyring.get_keyring()

    def is_available(self) -> bool:
        """Return `False` when only keyring's fail-everything backend is present."""

        return not isinstance(self._keyring(), fail.Keyring)

    def get_api_key(self) -> str | None:
        try:
            stored = self._keyring().get_password(self.service_name, self.account_name)
        except KeyringError:
            return None
        return normalize_optional_string(stored)

    def set_api_key(self, api_key: str) -> None:
        """Persist the trimmed key; blank keys and unusable backends are errors."""

        normalized = normalize_optional_string(api_key)
        if normalized is None:
            raise ValidationError("API key must be a non-empty string")
        if not self.is_available():
            raise ConfigurationError(
                "secure credential storage is unavailable (no keyring backend)",
                hint="Configure a keyring backend, or pass `--api-key` per run.",
            )
        try:
            self._keyring().set_password(self.service_name, self.account_name, normalized)
        except KeyringError as exc:
            raise ConfigurationError(
                f"failed to store API key securely: {exc}",
                hint="Configure a keyring backend, or pass `--api-key` per run.",
            ) from exc

    def clear_api_key(self) -> bool:
        """Delete the stored key and report whether one was present."""

        if self.get_api_key() is None:
            return False
        try:
            self._keyring().delete_password(self.service_name, self.account_name)
        except PasswordDeleteError:
            return False
        return True


def create_credential_store(provider: Provider = Provider.ELEVENLABS) -> KeyringCredentialStore:
    """Create the keyring store for `provider`."""

    return KeyringCredentialStore(account_name=account_name_for(provider))
