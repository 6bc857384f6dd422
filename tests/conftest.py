"""Shared pytest fixtures for the full sag test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest
from keyring.backends import fail
from loguru import logger

from tests.doubles import RequestRecorder

_PROVIDER_ENV_KEYS = (
    "ELEVENLABS_API_KEY",
    "ELEVENLABS_API_KEY_FILE",
    "ELEVENLABS_VOICE_ID",
    "MINIMAX_API_KEY",
    "MINIMAX_API_KEY_FILE",
    "MINIMAX_VOICE_ID",
    "MINIMAX_API_HOST",
    "MINIMAX_BASE_URL",
    "SAG_API_KEY",
    "SAG_API_KEY_FILE",
    "SAG_VOICE_ID",
)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep provider env vars, keyring, and the voice cache out of every test."""

    for key in _PROVIDER_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg-cache"))
    monkeypatch.setattr("sag.credentials.keyring.get_keyring", fail.Keyring)


@pytest.fixture(autouse=True)
def _detach_log_sinks() -> Iterator[None]:
    """Drop loguru sinks bound to per-test streams once the test finishes."""

    yield
    logger.remove()


@pytest.fixture
def http_recorder(monkeypatch: pytest.MonkeyPatch) -> RequestRecorder:
    """Replace `requests.request` used by provider clients with a recorder."""

    recorder = RequestRecorder()
    monkeypatch.setattr("sag.providers.http_client.requests.request", recorder)
    return recorder
