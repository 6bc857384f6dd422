"""Voice preview download and playback for `sag voices --try`."""

from __future__ import annotations

from typing import Protocol

from ..audio.player import PlaybackFunc
from ..cancellation import CancelToken
from ..errors import NotFoundError
from ..models import Voice
from ..providers.http_client import ResponseByteStream, _BaseHttpClient


PREVIEW_TIMEOUT_SECONDS = 45.0


class VoiceDetailsClient(Protocol):
    def get_voice(self, voice_id: str, token: CancelToken | None = None) -> Voice: ...


class PreviewDownloader(_BaseHttpClient):
    """Unauthenticated client for public preview sample URLs."""

    provider_label = "preview"

    def __init__(self, timeout_seconds: float = PREVIEW_TIMEOUT_SECONDS) -> None:
        super().__init__(api_key=None, base_url="", timeout_seconds=timeout_seconds)

    def _auth_headers(self) -> dict[str, str]:
        return {}

    def open(self, url: str, token: CancelToken | None = None) -> ResponseByteStream:
        """Open a preview URL as a streaming MP3 body."""

        response = self._request(
            "GET",
            "",
            operation="preview download",
            token=token,
            accept="audio/mpeg",
            stream=True,
            url=url,
        )
        return ResponseByteStream(response, token=token)


def play_voice_preview(
    client: VoiceDetailsClient,
    voice: Voice,
    *,
    player: PlaybackFunc,
    token: CancelToken | None = None,
    downloader: PreviewDownloader | None = None,
) -> None:
    """Play one voice's preview sample, fetching its details when needed."""

    downloader = downloader or PreviewDownloader()
    parent = token if token is not None else CancelToken()
    with parent.child(PREVIEW_TIMEOUT_SECONDS) as preview_token:
        preview_url = voice.preview_url.strip()
        if not preview_url and voice.voice_id:
            preview_url = client.get_voice(voice.voice_id, preview_token).preview_url.strip()
        if not preview_url:
            raise NotFoundError("preview URL unavailable")

        stream = downloader.open(preview_url, preview_token)
        try:
            player(stream, preview_token)
        finally:
            stream.close()
