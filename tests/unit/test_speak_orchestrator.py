"""Unit tests for speak orchestration over a fake provider client."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from sag.cancellation import CancelToken
from sag.cli_runtime import VoiceSelection
from sag.errors import NothingToDoError, TransportError
from sag.models import ElevenLabsOptions, Provider, Voice
from sag.speak import SpeakInvocation, SpeakOrchestrator, plan_output
from sag.telemetry.logger import RunLogger
from tests.doubles import FakeVoiceClient, RecordingPlayer

AUDIO = b"ID3" + bytes(range(200))
VOICE_ID = "21m00Tcm4TlvDq8ikWAM"


def _invocation(**overrides: object) -> SpeakInvocation:
    values: dict[str, object] = {
        "voice": VoiceSelection(VOICE_ID, force_id=True),
        "model_id": "eleven_v3",
        "output_format": "mp3_44100_128",
        "options": ElevenLabsOptions(),
        "text_args": ("Hello", "world"),
    }
    values.update(overrides)
    return SpeakInvocation(**values)  # type: ignore[arg-type]


def _orchestrator(
    client: FakeVoiceClient,
    *,
    player: RecordingPlayer | None = None,
    verbose: bool = False,
    **kwargs: object,
) -> tuple[SpeakOrchestrator, io.StringIO]:
    sink = io.StringIO()
    orchestrator = SpeakOrchestrator(
        client,  # type: ignore[arg-type]
        Provider.ELEVENLABS,
        run_logger=RunLogger(sink, verbose=verbose),
        player=player or RecordingPlayer(),
        **kwargs,  # type: ignore[arg-type]
    )
    return orchestrator, sink


def test_streaming_run_plays_audio_and_reports_outcome() -> None:
    """Streaming mode should feed the provider stream to playback."""

    client = FakeVoiceClient()
    client.audio = AUDIO
    player = RecordingPlayer()
    orchestrator, _ = _orchestrator(client, player=player)

    outcome = orchestrator.run(_invocation(speed=1.1))

    assert outcome is not None
    assert outcome.voice_id == VOICE_ID
    assert outcome.byte_count == len(AUDIO)
    assert outcome.request.text == "Hello world"
    assert outcome.request.speed == 1.1
    assert player.played == [AUDIO]
    assert [voice_id for voice_id, _ in client.stream_calls] == [VOICE_ID]
    assert client.convert_calls == []


def test_buffered_run_writes_output_file_without_playback(tmp_path: Path) -> None:
    """`--no-stream` with `--output` should save the converted audio only."""

    client = FakeVoiceClient()
    client.audio = AUDIO
    player = RecordingPlayer()
    output = tmp_path / "out.mp3"
    orchestrator, _ = _orchestrator(client, player=player)

    outcome = orchestrator.run(_invocation(stream=False, play=False, output_path=output))

    assert outcome is not None
    assert output.read_bytes() == AUDIO
    assert player.calls == 0
    assert len(client.convert_calls) == 1


def test_question_mark_voice_prints_directory_and_skips_synthesis(
    capsys: pytest.CaptureFixture[str],
) -> None:
    """`-v ?` should list voices and return before reading any text."""

    client = FakeVoiceClient([Voice(voice_id="v1", name="Roger", category="premade")])
    orchestrator, _ = _orchestrator(client)

    outcome = orchestrator.run(_invocation(voice=VoiceSelection("?"), text_args=(), play=False))

    assert outcome is None
    assert "Roger" in capsys.readouterr().out
    assert client.stream_calls == []


def test_no_sinks_raises_nothing_to_do_before_synthesis() -> None:
    """Disabling playback without an output file should fail fast."""

    client = FakeVoiceClient()
    orchestrator, _ = _orchestrator(client)

    with pytest.raises(NothingToDoError):
        orchestrator.run(_invocation(play=False))
    assert client.stream_calls == []


def test_no_sinks_with_voice_name_fails_before_voice_lookup() -> None:
    """A voice name should not trigger a search when there is nowhere to send audio."""

    client = FakeVoiceClient([Voice(voice_id="roger-id", name="Roger")])
    orchestrator, _ = _orchestrator(client)

    with pytest.raises(NothingToDoError):
        orchestrator.run(_invocation(voice=VoiceSelection("roger"), play=False))
    assert client.search_calls == []
    assert client.list_calls == 0
    assert client.stream_calls == []


def test_name_resolution_notice_and_metrics_line() -> None:
    """Resolved names and the metrics summary should be reported on the log sink."""

    client = FakeVoiceClient([Voice(voice_id="roger-id", name="Roger")])
    client.audio = AUDIO
    ticks = iter([10.0, 11.5])
    orchestrator, sink = _orchestrator(client, clock=lambda: next(ticks))

    orchestrator.run(
        _invocation(
            voice=VoiceSelection("roger"),
            options=ElevenLabsOptions(latency_tier=2),
            metrics=True,
        )
    )

    lines = sink.getvalue().splitlines()
    assert "using voice Roger (roger-id)" in lines
    assert (
        f"metrics: chars=11 bytes={len(AUDIO)} model=eleven_v3 voice=roger-id "
        "stream=true latencyTier=2 dur=1.5s"
    ) in lines


def test_synthesis_failure_is_logged_and_reraised() -> None:
    """Provider errors should be reported as a failed stage and propagate."""

    class FailingClient(FakeVoiceClient):
        def stream_tts(self, voice_id, request, token=None):  # type: ignore[no-untyped-def]
            raise TransportError("stream TTS failed (HTTP 500).")

    orchestrator, sink = _orchestrator(FailingClient(), verbose=True)

    with pytest.raises(TransportError, match="HTTP 500"):
        orchestrator.run(_invocation())
    assert "stage=synthesize event=failure error_type=TransportError" in sink.getvalue()


def test_cancelled_parent_token_aborts_synthesis(tmp_path: Path) -> None:
    """A fired parent token should stop delivery with the token error."""

    client = FakeVoiceClient()
    client.audio = AUDIO
    token = CancelToken()
    token.cancel("interrupted")
    orchestrator, _ = _orchestrator(client)

    with pytest.raises(Exception, match="interrupted"):
        orchestrator.run(_invocation(play=False, output_path=tmp_path / "out.mp3"), token)


def test_plan_output_infers_format_and_mutes_playback() -> None:
    """An output path should set the format from its extension and disable implicit playback."""

    plan = plan_output(
        Provider.ELEVENLABS,
        output_format="mp3_44100_128",
        play=True,
        play_explicit=False,
        output_path=Path("clip.wav"),
    )
    explicit = plan_output(
        Provider.MINIMAX,
        output_format="mp3",
        play=True,
        play_explicit=True,
        output_path=Path("clip.unknown"),
    )

    assert (plan.output_format, plan.play) == ("pcm_44100", False)
    assert (explicit.output_format, explicit.play) == ("mp3", True)
    assert plan_output(
        Provider.ELEVENLABS,
        output_format="mp3_22050_32",
        play=True,
        play_explicit=False,
        output_path=None,
    ).play is True
