"""Speak command orchestration.

Responsibilities:
- Resolve the voice, then the text, then synthesize under one deadline.
- Route the provider audio to the speaker and/or an output file.
- Report request metrics when asked.

Key types:
- `SpeakInvocation`: validated inputs for one `sag speak` run.
- `SpeakOutcome`: what was synthesized and how many bytes were delivered.
- `SpeakOrchestrator`: orchestration facade over one provider client.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence, TextIO

from .audio.player import PlaybackFunc, play_to_speakers
from .audio.tee import tee_buffer, tee_stream
from .cancellation import CancelToken
from .cli_runtime import VoiceSelection
from .config import SpeakConfig
from .errors import NothingToDoError
from .models import ElevenLabsOptions, MiniMaxOptions, Provider, SynthesisRequest
from .providers.factory import SpeechClient
from .providers.request_options import infer_output_format
from .telemetry.logger import RunLogger
from .text_input import resolve_text
from .voices.resolver import VoiceResolver


@dataclass(frozen=True, slots=True)
class OutputPlan:
    """Effective output format and sinks after `--output` inference."""

    output_format: str
    play: bool
    output_path: Path | None


def plan_output(
    provider: Provider,
    *,
    output_format: str,
    play: bool,
    play_explicit: bool,
    output_path: Path | None,
) -> OutputPlan:
    """Infer the format from the output extension and mute playback for `-o`.

    Playback stays on with `--output` only when `--play` was given explicitly.
    """

    if output_path is None:
        return OutputPlan(output_format=output_format, play=play, output_path=None)
    inferred = infer_output_format(provider, output_path)
    return OutputPlan(
        output_format=inferred or output_format,
        play=play if play_explicit else False,
        output_path=output_path,
    )


@dataclass(frozen=True, slots=True)
class SpeakInvocation:
    """Validated inputs for one speak run; text is resolved lazily."""

    voice: VoiceSelection
    model_id: str
    output_format: str
    options: ElevenLabsOptions | MiniMaxOptions
    speed: float = 1.0
    stream: bool = True
    play: bool = True
    output_path: Path | None = None
    text_args: Sequence[str] = field(default_factory=tuple)
    input_file: str | None = None
    metrics: bool = False


@dataclass(frozen=True, slots=True)
class SpeakOutcome:
    """Result of a completed speak run."""

    voice_id: str
    request: SynthesisRequest
    byte_count: int
    duration_seconds: float


class SpeakOrchestrator:
    """Coordinate voice resolution, synthesis, and delivery for one provider."""

    def __init__(
        self,
        client: SpeechClient,
        provider: Provider,
        *,
        run_logger: RunLogger,
        player: PlaybackFunc = play_to_speakers,
        config: SpeakConfig | None = None,
        stdin: TextIO | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._provider = provider
        self._logger = run_logger
        self._player = player
        self._config = config or SpeakConfig()
        self._stdin = stdin
        self._clock = clock

    def run(self, invocation: SpeakInvocation, token: CancelToken | None = None) -> SpeakOutcome | None:
        """Run one speak invocation.

        Returns `None` when the `?` voice directory was printed instead.
        """

        root = token if token is not None else CancelToken()
        directory_only = (invocation.voice.voice_input or "").strip() == "?"
        if not directory_only and not invocation.play and invocation.output_path is None:
            raise NothingToDoError()
        resolver = VoiceResolver(
            self._client,
            self._provider,
            logger=self._logger,
            token=root,
            listing_timeout_seconds=self._config.voices_timeout_seconds,
        )
        self._logger.log_stage_start("voice", provider=self._provider.value)
        voice_id = resolver.resolve(invocation.voice.voice_input, force_id=invocation.voice.force_id)
        if not voice_id:
            return None
        self._logger.log_stage_complete("voice", voice=voice_id)

        text = resolve_text(invocation.text_args, invocation.input_file, self._stdin)
        request = SynthesisRequest(
            text=text,
            model_id=invocation.model_id,
            output_format=invocation.output_format,
            speed=invocation.speed,
            options=invocation.options,
        )

        started = self._clock()
        with root.child(self._config.synthesis_timeout_seconds) as synthesis_token:
            byte_count = self._synthesize(voice_id, request, invocation, synthesis_token)
        duration = self._clock() - started

        if invocation.metrics:
            latency_tier = (
                request.options.latency_tier
                if isinstance(request.options, ElevenLabsOptions)
                else 0
            )
            self._logger.metrics(
                chars=len(text),
                byte_count=byte_count,
                model_id=request.model_id,
                voice_id=voice_id,
                stream=invocation.stream,
                latency_tier=latency_tier,
                duration_seconds=duration,
            )
        return SpeakOutcome(
            voice_id=voice_id,
            request=request,
            byte_count=byte_count,
            duration_seconds=duration,
        )

    def _synthesize(
        self,
        voice_id: str,
        request: SynthesisRequest,
        invocation: SpeakInvocation,
        token: CancelToken,
    ) -> int:
        mode = "stream" if invocation.stream else "convert"
        self._logger.log_stage_start("synthesize", mode=mode, model=request.model_id)
        try:
            if invocation.stream:
                source = self._client.stream_tts(voice_id, request, token)
                byte_count = tee_stream(
                    source,
                    output_path=invocation.output_path,
                    play=invocation.play,
                    player=self._player,
                    token=token,
                )
            else:
                data = self._client.convert_tts(voice_id, request, token)
                byte_count = tee_buffer(
                    data,
                    output_path=invocation.output_path,
                    play=invocation.play,
                    player=self._player,
                    token=token,
                )
        except Exception as exc:
            self._logger.log_stage_failure("synthesize", type(exc).__name__)
            raise
        self._logger.log_stage_complete("synthesize", bytes=byte_count)
        return byte_count
