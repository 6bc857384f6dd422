"""CLI provider runtime resolution helpers.

This module isolates API-key lookup, voice environment fallbacks, and base
URL selection from the command wiring layer. Sources are consulted in a fixed
precedence order so runs are reproducible.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping

from .credentials import CredentialStore, create_credential_store
from .errors import ConfigurationError
from .models import Provider
from .parsing import first_env_value, normalize_optional_string
from .providers.elevenlabs import DEFAULT_ELEVENLABS_BASE_URL
from .providers.minimax import DEFAULT_MINIMAX_BASE_URL, minimax_base_url


_API_KEY_ENV = {
    Provider.ELEVENLABS: "ELEVENLABS_API_KEY",
    Provider.MINIMAX: "MINIMAX_API_KEY",
}
_API_KEY_FILE_ENV = {
    Provider.ELEVENLABS: "ELEVENLABS_API_KEY_FILE",
    Provider.MINIMAX: "MINIMAX_API_KEY_FILE",
}
_VOICE_ENV = {
    Provider.ELEVENLABS: "ELEVENLABS_VOICE_ID",
    Provider.MINIMAX: "MINIMAX_VOICE_ID",
}


@dataclass(frozen=True, slots=True)
class VoiceSelection:
    """Voice input for the resolver plus whether it must be used verbatim."""

    voice_input: str | None
    force_id: bool = False


def read_api_key_file(path: Path) -> str:
    """Read a trimmed API key from `path`."""

    try:
        key = path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise ConfigurationError(f"read api key file: {exc}") from exc
    if not key:
        raise ConfigurationError(f"api key file {str(path)!r} is empty")
    return key


def resolve_api_key(
    provider: Provider,
    *,
    api_key: str | None = None,
    api_key_file: Path | None = None,
    env: Mapping[str, str] | None = None,
    credential_store_factory: Callable[[Provider], CredentialStore] = create_credential_store,
) -> str:
    """Resolve the provider API key.

    Precedence is `--api-key`, `--api-key-file`, the provider/`SAG_` key-file
    env vars, secure storage, the provider key env var, then `SAG_API_KEY`.
    """

    env_map: Mapping[str, str] = os.environ if env is None else env

    explicit = normalize_optional_string(api_key)
    if explicit is not None:
        return explicit

    if api_key_file is not None:
        return read_api_key_file(api_key_file)
    file_env = first_env_value(env_map, _API_KEY_FILE_ENV[provider], "SAG_API_KEY_FILE")
    if file_env is not None:
        return read_api_key_file(Path(file_env[1]))

    stored = credential_store_factory(provider).get_api_key()
    if stored is not None:
        return stored

    key_env = first_env_value(env_map, _API_KEY_ENV[provider], "SAG_API_KEY")
    if key_env is not None:
        return key_env[1]

    env_name = _API_KEY_ENV[provider]
    raise ConfigurationError(
        f"missing {provider.display_name} API key "
        f"(set --api-key, --api-key-file, or {env_name})",
        hint=f"Run `sag credentials --provider {provider.value} --set-api-key` to store one.",
    )


def resolve_voice_selection(
    provider: Provider,
    *,
    voice: str | None = None,
    voice_id: str | None = None,
    default_voice: str | None = None,
    env: Mapping[str, str] | None = None,
) -> VoiceSelection:
    """Pick the voice input from flags, environment, then config defaults.

    `--voice-id` and voice ids taken from the environment bypass name
    resolution; `--voice` and config defaults go through it.
    """

    env_map: Mapping[str, str] = os.environ if env is None else env

    explicit_id = normalize_optional_string(voice_id)
    if explicit_id is not None:
        return VoiceSelection(voice_input=explicit_id, force_id=True)
    explicit_voice = normalize_optional_string(voice)
    if explicit_voice is not None:
        return VoiceSelection(voice_input=explicit_voice)

    env_voice = first_env_value(env_map, _VOICE_ENV[provider], "SAG_VOICE_ID")
    if env_voice is not None:
        return VoiceSelection(voice_input=env_voice[1], force_id=True)

    return VoiceSelection(voice_input=normalize_optional_string(default_voice))


def resolve_base_url(
    provider: Provider,
    base_url: str | None = None,
    env: Mapping[str, str] | None = None,
) -> str:
    """Return the API base URL for `provider`; an explicit value wins."""

    explicit = normalize_optional_string(base_url)
    if explicit is not None:
        return explicit.rstrip("/")
    if provider is Provider.MINIMAX:
        return minimax_base_url(os.environ if env is None else env) or DEFAULT_MINIMAX_BASE_URL
    return DEFAULT_ELEVENLABS_BASE_URL
