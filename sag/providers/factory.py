"""Provider factory helpers for speech and voice clients.

Responsibilities:
- Resolve a `Provider` to its concrete HTTP client.
- Keep the speak and voices commands independent from client construction.
"""

from __future__ import annotations

from typing import Protocol

from ..cancellation import CancelToken
from ..models import Provider, SynthesisRequest, Voice
from .elevenlabs import ElevenLabsClient
from .minimax import MiniMaxClient


class AudioStream(Protocol):
    """Closeable byte stream returned by streaming synthesis."""

    def read(self, size: int = -1) -> bytes: ...

    def close(self) -> None: ...


class SpeechClient(Protocol):
    """Operations shared by every provider client."""

    provider_label: str
    supports_search: bool
    describes_voices: bool
    default_voice_env: str

    def list_voices(self, token: CancelToken | None = None) -> list[Voice]: ...

    def stream_tts(
        self,
        voice_id: str,
        request: SynthesisRequest,
        token: CancelToken | None = None,
    ) -> AudioStream: ...

    def convert_tts(
        self,
        voice_id: str,
        request: SynthesisRequest,
        token: CancelToken | None = None,
    ) -> bytes: ...


class ProviderFactory:
    """Factory for provider-backed speech clients."""

    @staticmethod
    def create(
        provider: Provider,
        api_key: str | None,
        base_url: str | None = None,
    ) -> SpeechClient:
        """Create the client for `provider`."""

        if provider is Provider.MINIMAX:
            return MiniMaxClient(api_key=api_key, base_url=base_url)
        if provider is Provider.ELEVENLABS:
            return ElevenLabsClient(api_key=api_key, base_url=base_url)
        raise ValueError(f"Unsupported provider `{provider}`.")
