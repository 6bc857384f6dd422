"""MiniMax HTTP client for voice listing and speech synthesis.

Responsibilities:
- List system, cloned, and generated voices as one flat voice list.
- Request SSE-streamed and full-buffer hex audio from `/v1/t2a_v2`.
- Serialize `SynthesisRequest` values into the MiniMax JSON payload.
"""

from __future__ import annotations

from typing import Any, Mapping

from ..cancellation import CancelToken
from ..errors import DecodeError, ProviderResponseError, TransportError
from ..models import MiniMaxOptions, SynthesisRequest, Voice
from ..parsing import normalize_optional_string
from .http_client import _BaseHttpClient
from .sse import EventStreamReader, check_base_resp


DEFAULT_MINIMAX_BASE_URL = "https://api.minimax.io"
_VOICE_GROUPS = (
    ("system_voice", "system"),
    ("voice_cloning", "voice_cloning"),
    ("voice_generation", "voice_generation"),
)


def minimax_base_url(env: Mapping[str, str]) -> str | None:
    """Return the MiniMax base URL from `MINIMAX_API_HOST` / `MINIMAX_BASE_URL`.

    A bare host gets an `https://` scheme; `None` means the default endpoint.
    """

    host = normalize_optional_string(env.get("MINIMAX_API_HOST"))
    if host is None:
        host = normalize_optional_string(env.get("MINIMAX_BASE_URL"))
    if host is None:
        return None
    if host.startswith(("http://", "https://")):
        return host
    return f"https://{host}"


class MiniMaxClient(_BaseHttpClient):
    """Minimal requests-based MiniMax client."""

    provider_label = "MiniMax"
    supports_search = False
    describes_voices = False
    default_voice_env = "MINIMAX_VOICE_ID"

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str | None = None,
        timeout_seconds: float = 60.0,
    ) -> None:
        super().__init__(
            api_key=api_key,
            base_url=base_url or DEFAULT_MINIMAX_BASE_URL,
            timeout_seconds=timeout_seconds,
        )

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def list_voices(self, token: CancelToken | None = None) -> list[Voice]:
        """Return all voices, tagging each with its group as category."""

        payload = self._request_json(
            "POST",
            "/v1/get_voice",
            operation="list voices",
            token=token,
            payload={"voice_type": "all"},
        )
        if not isinstance(payload, dict):
            raise TransportError(
                "list voices failed: MiniMax response is not an object.",
                failure_kind="invalid_response",
            )
        check_base_resp(payload.get("base_resp"))

        voices: list[Voice] = []
        for group_key, category in _VOICE_GROUPS:
            for entry in payload.get(group_key) or []:
                if not isinstance(entry, dict):
                    continue
                voice_id = str(entry.get("voice_id") or "")
                name = str(entry.get("voice_name") or "").strip() or voice_id
                description = entry.get("description") or []
                if isinstance(description, list):
                    description = " ".join(str(item) for item in description)
                voices.append(
                    Voice(
                        voice_id=voice_id,
                        name=name,
                        category=category,
                        description=str(description),
                    )
                )
        return voices

    def stream_tts(
        self,
        voice_id: str,
        request: SynthesisRequest,
        token: CancelToken | None = None,
    ) -> EventStreamReader:
        """Start an SSE synthesis and return decoded MP3 bytes as a stream."""

        response = self._request(
            "POST",
            "/v1/t2a_v2",
            operation="stream TTS",
            token=token,
            payload=build_t2a_payload(voice_id, request, stream=True),
            accept="text/event-stream",
            stream=True,
        )
        return EventStreamReader(response, token=token)

    def convert_tts(
        self,
        voice_id: str,
        request: SynthesisRequest,
        token: CancelToken | None = None,
    ) -> bytes:
        """Synthesize the whole text and return the decoded audio bytes."""

        payload = self._request_json(
            "POST",
            "/v1/t2a_v2",
            operation="convert TTS",
            token=token,
            payload=build_t2a_payload(voice_id, request, stream=False),
        )
        if not isinstance(payload, dict):
            raise TransportError(
                "convert TTS failed: MiniMax response is not an object.",
                failure_kind="invalid_response",
            )
        check_base_resp(payload.get("base_resp"))
        data = payload.get("data")
        audio_hex = data.get("audio") if isinstance(data, dict) else None
        if not audio_hex:
            raise ProviderResponseError(
                "minimax response missing audio",
                failure_kind="invalid_response",
            )
        try:
            return bytes.fromhex(audio_hex)
        except (ValueError, TypeError) as exc:
            raise DecodeError(f"decode audio hex: {exc}") from exc


def _options(request: SynthesisRequest) -> MiniMaxOptions:
    if isinstance(request.options, MiniMaxOptions):
        return request.options
    return MiniMaxOptions()


def build_t2a_payload(voice_id: str, request: SynthesisRequest, *, stream: bool) -> dict[str, Any]:
    """Serialize a synthesis request into the MiniMax `t2a_v2` JSON body."""

    options = _options(request)
    voice_setting: dict[str, Any] = {"voice_id": voice_id}
    for key, value in (
        ("speed", options.speed),
        ("vol", options.volume),
        ("pitch", options.pitch),
        ("emotion", options.emotion),
        ("text_normalization", options.text_normalization),
        ("latex_read", options.latex_read),
    ):
        if value is not None and value != "":
            voice_setting[key] = value

    audio_setting: dict[str, Any] = {}
    if options.audio_format:
        audio_setting["format"] = options.audio_format

    payload: dict[str, Any] = {
        "model": request.model_id,
        "text": request.text,
        "stream": stream,
        "output_format": "hex",
        "voice_setting": voice_setting,
        "audio_setting": audio_setting,
    }
    if stream:
        payload["stream_options"] = {"exclude_aggregated_audio": True}
    if options.language_boost:
        payload["language_boost"] = options.language_boost
    if options.continuous_sound is not None:
        payload["continuous_sound"] = options.continuous_sound
    if options.tone:
        payload["pronunciation_dict"] = {"tone": list(options.tone)}
    if options.voice_modify is not None:
        modify = options.voice_modify
        payload["voice_modify"] = {
            key: value
            for key, value in (
                ("pitch", modify.pitch),
                ("intensity", modify.intensity),
                ("timbre", modify.timbre),
                ("sound_effects", modify.sound_effects),
            )
            if value is not None
        }
    return payload
