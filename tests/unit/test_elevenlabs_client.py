"""Unit tests for the ElevenLabs HTTP client."""

from __future__ import annotations

import pytest
import requests

from sag.errors import TransportError
from sag.models import ElevenLabsOptions, SynthesisRequest
from sag.providers.elevenlabs import ElevenLabsClient, build_tts_payload
from tests.doubles import FakeResponse, RecordedCall, RequestRecorder


def _client() -> ElevenLabsClient:
    return ElevenLabsClient(api_key="  el-key  ", base_url="https://el.test/")


def test_list_voices_sends_api_key_header_and_parses_voices(http_recorder: RequestRecorder) -> None:
    """Voice listing should authenticate with `xi-api-key` and map every entry."""

    http_recorder.responses.append(
        FakeResponse(
            json_body={
                "voices": [
                    {"voice_id": "v1", "name": "Roger", "category": "premade", "labels": {"accent": "american"}},
                    {"voice_id": "v2", "name": "Sarah", "description": None},
                    "not-a-voice",
                ]
            }
        )
    )

    voices = _client().list_voices()

    call = http_recorder.calls[0]
    assert call.method == "GET"
    assert call.url == "https://el.test/v1/voices"
    assert call.headers["xi-api-key"] == "el-key"
    assert [voice.voice_id for voice in voices] == ["v1", "v2"]
    assert voices[0].labels == {"accent": "american"}
    assert voices[1].description == ""


def test_search_voices_follows_pages_until_limit(http_recorder: RequestRecorder) -> None:
    """Search should pass the page token and stop once the limit is reached."""

    http_recorder.responses.extend(
        [
            FakeResponse(
                json_body={
                    "voices": [{"voice_id": "a", "name": "A"}, {"voice_id": "b", "name": "B"}],
                    "has_more": True,
                    "next_page_token": "page-2",
                }
            ),
            FakeResponse(
                json_body={
                    "voices": [{"voice_id": "c", "name": "C"}, {"voice_id": "d", "name": "D"}],
                    "has_more": True,
                    "next_page_token": "page-3",
                }
            ),
        ]
    )

    voices = _client().search_voices("warm", 3)

    assert [voice.voice_id for voice in voices] == ["a", "b", "c"]
    assert http_recorder.calls[0].url == "https://el.test/v2/voices"
    assert http_recorder.calls[0].params == {
        "search": "warm",
        "page_size": 3,
        "include_total_count": "false",
    }
    assert http_recorder.calls[1].params["next_page_token"] == "page-2"


def test_search_voices_without_limit_stops_when_no_more_pages(http_recorder: RequestRecorder) -> None:
    """Unlimited search should use the maximum page size and honor `has_more`."""

    http_recorder.responses.append(
        FakeResponse(json_body={"voices": [{"voice_id": "a", "name": "A"}], "has_more": False})
    )

    voices = _client().search_voices("calm", 0)

    assert [voice.voice_id for voice in voices] == ["a"]
    assert http_recorder.calls[0].params["page_size"] == 100
    assert len(http_recorder.calls) == 1


def test_get_voice_escapes_identifier(http_recorder: RequestRecorder) -> None:
    """Voice ids should be path-escaped in the detail endpoint."""

    http_recorder.responses.append(
        FakeResponse(json_body={"voice_id": "a/b", "name": "Odd", "preview_url": "https://p.test/a.mp3"})
    )

    voice = _client().get_voice("a/b")

    assert http_recorder.calls[0].url == "https://el.test/v1/voices/a%2Fb"
    assert voice.preview_url == "https://p.test/a.mp3"


def test_stream_tts_posts_payload_and_streams_body(http_recorder: RequestRecorder) -> None:
    """Streaming synthesis should send format and latency as query parameters."""

    response = FakeResponse(chunks=[b"ID3", b"audio"])
    http_recorder.responses.append(response)
    request = SynthesisRequest(
        text="Hello",
        model_id="eleven_v3",
        output_format="mp3_44100_128",
        speed=1.1,
        options=ElevenLabsOptions(stability=0.5, latency_tier=3),
    )

    stream = _client().stream_tts("voice-1", request)
    body = stream.read() + stream.read() + stream.read()
    stream.close()

    call = http_recorder.calls[0]
    assert call.url == "https://el.test/v1/text-to-speech/voice-1/stream"
    assert call.stream is True
    assert call.headers["Accept"] == "audio/mpeg"
    assert call.params == {"output_format": "mp3_44100_128", "optimize_streaming_latency": 3}
    assert call.json == {
        "text": "Hello",
        "model_id": "eleven_v3",
        "voice_settings": {"speed": 1.1, "stability": 0.5},
    }
    assert body == b"ID3audio"
    assert response.closed is True


def test_stream_body_interruption_is_reported_as_transport_error(http_recorder: RequestRecorder) -> None:
    """A connection failure while reading the body should be a transport error."""

    http_recorder.responses.append(
        FakeResponse(chunks=[b"partial"], chunk_error=requests.ConnectionError("reset by peer"))
    )
    request = SynthesisRequest(text="Hi", model_id="eleven_v3", output_format="mp3_44100_128")

    stream = _client().stream_tts("voice-1", request)

    assert stream.read() == b"partial"
    with pytest.raises(TransportError, match="audio stream interrupted: reset by peer"):
        stream.read()


def test_convert_tts_returns_whole_body(http_recorder: RequestRecorder) -> None:
    """Full-buffer synthesis should return the response content."""

    http_recorder.responses.append(FakeResponse(content=b"RIFFdata"))
    request = SynthesisRequest(text="Hi", model_id="eleven_v3", output_format="pcm_44100")

    audio = _client().convert_tts("voice-1", request)

    assert audio == b"RIFFdata"
    assert http_recorder.calls[0].url == "https://el.test/v1/text-to-speech/voice-1"
    assert http_recorder.calls[0].params == {"output_format": "pcm_44100"}


def test_http_401_maps_to_invalid_api_key_with_redacted_body(http_recorder: RequestRecorder) -> None:
    """Auth failures should carry status, a hint, and no secret material."""

    http_recorder.responses.append(
        FakeResponse(
            401,
            json_body={"detail": {"message": "Invalid key sk_abcdefghijklmnop supplied"}},
        )
    )

    with pytest.raises(TransportError) as exc_info:
        _client().list_voices()

    error = exc_info.value
    assert error.status_code == 401
    assert error.failure_kind == "invalid_api_key"
    assert "list voices failed (HTTP 401)" in error.detail
    assert "sk_abcdefghijklmnop" not in error.detail
    assert "[redacted-key]" in error.detail
    assert error.hint is not None and "ElevenLabs API key" in error.hint


def test_request_timeout_maps_to_timeout_failure(http_recorder: RequestRecorder) -> None:
    """A requests timeout should be reported with the timeout failure kind."""

    def _timeout(call: RecordedCall) -> FakeResponse:
        raise requests.Timeout("read timed out")

    http_recorder.handler = _timeout

    with pytest.raises(TransportError, match="list voices failed: request timed out.") as exc_info:
        _client().list_voices()
    assert exc_info.value.failure_kind == "timeout"


def test_invalid_json_body_is_reported(http_recorder: RequestRecorder) -> None:
    """Non-JSON success bodies should fail with an invalid-response error."""

    http_recorder.responses.append(FakeResponse(content=b"<html>"))

    with pytest.raises(TransportError, match="invalid JSON payload") as exc_info:
        _client().list_voices()
    assert exc_info.value.failure_kind == "invalid_response"


def test_build_tts_payload_sends_only_set_knobs() -> None:
    """Unset knobs should be omitted while speed is always present."""

    request = SynthesisRequest(
        text="Hallo",
        model_id="eleven_multilingual_v2",
        output_format="mp3_44100_128",
        options=ElevenLabsOptions(
            similarity_boost=0.8,
            style=0.2,
            use_speaker_boost=False,
            seed=42,
            apply_text_normalization="off",
            language_code="de",
        ),
    )

    assert build_tts_payload(request) == {
        "text": "Hallo",
        "model_id": "eleven_multilingual_v2",
        "voice_settings": {
            "speed": 1.0,
            "similarity_boost": 0.8,
            "style": 0.2,
            "use_speaker_boost": False,
        },
        "seed": 42,
        "apply_text_normalization": "off",
        "language_code": "de",
    }
