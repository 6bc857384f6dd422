"""ElevenLabs HTTP client for voice listing and speech synthesis.

Responsibilities:
- List, search, and fetch voices from the ElevenLabs voice endpoints.
- Request streaming (chunked MP3) and full-buffer synthesis.
- Serialize `SynthesisRequest` values into the ElevenLabs JSON payload.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from ..cancellation import CancelToken
from ..errors import TransportError
from ..models import ElevenLabsOptions, SynthesisRequest, Voice
from .http_client import ResponseByteStream, _BaseHttpClient


DEFAULT_ELEVENLABS_BASE_URL = "https://api.elevenlabs.io"
MAX_SEARCH_PAGE_SIZE = 100


class ElevenLabsClient(_BaseHttpClient):
    """Minimal requests-based ElevenLabs client."""

    provider_label = "ElevenLabs"
    supports_search = True
    describes_voices = True
    default_voice_env = "ELEVENLABS_VOICE_ID"

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str | None = None,
        timeout_seconds: float = 60.0,
    ) -> None:
        super().__init__(
            api_key=api_key,
            base_url=base_url or DEFAULT_ELEVENLABS_BASE_URL,
            timeout_seconds=timeout_seconds,
        )

    def _auth_headers(self) -> dict[str, str]:
        return {"xi-api-key": self.api_key}

    def list_voices(self, token: CancelToken | None = None) -> list[Voice]:
        """Return every voice visible to the account."""

        payload = self._request_json("GET", "/v1/voices", operation="list voices", token=token)
        return _voices_from_payload(payload)

    def search_voices(
        self,
        query: str,
        limit: int,
        token: CancelToken | None = None,
    ) -> list[Voice]:
        """Run a server-side voice search, following pagination up to `limit`."""

        page_size = limit if 0 < limit <= MAX_SEARCH_PAGE_SIZE else MAX_SEARCH_PAGE_SIZE
        voices: list[Voice] = []
        next_page_token = ""
        while True:
            params: dict[str, Any] = {
                "search": query,
                "page_size": page_size,
                "include_total_count": "false",
            }
            if next_page_token:
                params["next_page_token"] = next_page_token
            payload = self._request_json(
                "GET",
                "/v2/voices",
                operation="search voices",
                token=token,
                params=params,
            )
            voices.extend(_voices_from_payload(payload))
            if limit > 0 and len(voices) >= limit:
                return voices[:limit]
            next_page_token = str(payload.get("next_page_token") or "")
            if not next_page_token or not payload.get("has_more", True):
                return voices

    def get_voice(self, voice_id: str, token: CancelToken | None = None) -> Voice:
        """Return the detail record of one voice."""

        payload = self._request_json(
            "GET",
            f"/v1/voices/{quote(voice_id, safe='')}",
            operation="get voice",
            token=token,
        )
        if not isinstance(payload, dict):
            raise TransportError(
                "get voice failed: ElevenLabs response is not an object.",
                failure_kind="invalid_response",
            )
        return Voice.from_payload(payload)

    def stream_tts(
        self,
        voice_id: str,
        request: SynthesisRequest,
        token: CancelToken | None = None,
    ) -> ResponseByteStream:
        """Start a streaming synthesis and return the MP3 body as a byte stream."""

        options = _options(request)
        params: dict[str, Any] = {}
        if request.output_format:
            params["output_format"] = request.output_format
        if options.latency_tier > 0:
            params["optimize_streaming_latency"] = options.latency_tier
        response = self._request(
            "POST",
            f"/v1/text-to-speech/{quote(voice_id, safe='')}/stream",
            operation="stream TTS",
            token=token,
            params=params or None,
            payload=build_tts_payload(request),
            accept="audio/mpeg",
            stream=True,
        )
        return ResponseByteStream(response, token=token)

    def convert_tts(
        self,
        voice_id: str,
        request: SynthesisRequest,
        token: CancelToken | None = None,
    ) -> bytes:
        """Synthesize the whole text and return the audio bytes."""

        params = {"output_format": request.output_format} if request.output_format else None
        response = self._request(
            "POST",
            f"/v1/text-to-speech/{quote(voice_id, safe='')}",
            operation="convert TTS",
            token=token,
            params=params,
            payload=build_tts_payload(request),
            accept="audio/mpeg",
        )
        try:
            return bytes(response.content)
        finally:
            response.close()


def _options(request: SynthesisRequest) -> ElevenLabsOptions:
    if isinstance(request.options, ElevenLabsOptions):
        return request.options
    return ElevenLabsOptions()


def build_tts_payload(request: SynthesisRequest) -> dict[str, Any]:
    """Serialize a synthesis request into the ElevenLabs JSON body.

    Only explicitly set knobs are sent; speed is always sent.
    """

    options = _options(request)
    voice_settings: dict[str, Any] = {"speed": request.speed}
    if options.stability is not None:
        voice_settings["stability"] = options.stability
    if options.similarity_boost is not None:
        voice_settings["similarity_boost"] = options.similarity_boost
    if options.style is not None:
        voice_settings["style"] = options.style
    if options.use_speaker_boost is not None:
        voice_settings["use_speaker_boost"] = options.use_speaker_boost

    payload: dict[str, Any] = {"text": request.text, "voice_settings": voice_settings}
    if request.model_id:
        payload["model_id"] = request.model_id
    if options.seed is not None:
        payload["seed"] = options.seed
    if options.apply_text_normalization:
        payload["apply_text_normalization"] = options.apply_text_normalization
    if options.language_code:
        payload["language_code"] = options.language_code
    return payload


def _voices_from_payload(payload: Any) -> list[Voice]:
    if not isinstance(payload, dict):
        raise TransportError(
            "list voices failed: ElevenLabs response is not an object.",
            failure_kind="invalid_response",
        )
    entries = payload.get("voices") or []
    if not isinstance(entries, list):
        raise TransportError(
            "list voices failed: ElevenLabs response `voices` is not a list.",
            failure_kind="invalid_response",
        )
    return [Voice.from_payload(entry) for entry in entries if isinstance(entry, dict)]
