"""Command-line interface for sag.

Responsibilities:
- Expose `speak` (also the implicit command), `voices`, and `credentials`.
- Convert CLI arguments into validated request options before any network call.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application, defaulting to `speak`.
"""

from __future__ import annotations

import sys
from datetime import timedelta
from pathlib import Path
from typing import Annotated, Sequence

import click
import typer

from . import __version__
from .audio.player import play_to_speakers
from .cli_rendering import exit_with_command_error
from .cli_runtime import resolve_api_key, resolve_base_url, resolve_voice_selection
from .config import ConfigLoader, SpeakConfig, apply_rate_and_speed
from .credentials import create_credential_store
from .errors import ConfigurationError, ValidationError
from .models import Provider
from .parsing import normalize_optional_string
from .providers.elevenlabs import ElevenLabsClient
from .providers.factory import ProviderFactory
from .providers.request_options import build_elevenlabs_options, build_minimax_options
from .speak import SpeakInvocation, SpeakOrchestrator, plan_output
from .telemetry.logger import RunLogger
from .voices.listing import DEFAULT_VOICE_LIMIT, VoiceDirectory, VoiceListingRequest

app = typer.Typer(
    name="sag",
    no_args_is_help=True,
    help="Command-line text-to-speech with streaming playback.",
    context_settings={"help_option_names": ["-h", "--help"]},
)

_HELP_ARGS = frozenset({"-h", "--help", "-V", "--version"})

ApiKeyOption = Annotated[
    str | None,
    typer.Option("--api-key", help="Provider API key (or ELEVENLABS_API_KEY / MINIMAX_API_KEY)."),
]
ApiKeyFileOption = Annotated[
    Path | None,
    typer.Option("--api-key-file", help="Read the provider API key from a file."),
]
BaseUrlOption = Annotated[
    str | None,
    typer.Option("--base-url", help="Override the provider API base URL."),
]
ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="YAML file with default settings."),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", help="Print debug diagnostics to stderr."),
]


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"sag {__version__}")
        raise typer.Exit()


@app.callback()
def root_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            help="Print version and exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """Speak text through ElevenLabs or MiniMax voices."""


def _explicit(ctx: typer.Context, name: str) -> bool:
    """Return whether a parameter was given on the command line."""

    return ctx.get_parameter_source(name) is click.core.ParameterSource.COMMANDLINE


def _load_config(config_path: Path | None) -> SpeakConfig:
    """Load YAML defaults when requested."""

    if config_path is None:
        return SpeakConfig()
    if not config_path.exists():
        raise ConfigurationError(
            f"config file not found: `{config_path}`",
            hint="Provide an existing path via `--config <path.yaml>`.",
        )
    return ConfigLoader.from_yaml(config_path)


@app.command("speak")
def speak_command(
    ctx: typer.Context,
    text: Annotated[
        list[str] | None,
        typer.Argument(help="Text to speak; reads stdin when omitted."),
    ] = None,
    voice: Annotated[
        str | None,
        typer.Option("--voice", "-v", help="Voice name or id; use '?' to list voices."),
    ] = None,
    voice_id: Annotated[
        str | None,
        typer.Option("--voice-id", help="Voice id used verbatim (ELEVENLABS_VOICE_ID)."),
    ] = None,
    model_id: Annotated[
        str | None,
        typer.Option("--model-id", help="Model id (default eleven_v3; speech-* selects MiniMax)."),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write audio to file (disables playback unless --play)."),
    ] = None,
    output_format: Annotated[
        str | None,
        typer.Option("--format", help="Output format (e.g. mp3_44100_128)."),
    ] = None,
    stream: Annotated[
        bool,
        typer.Option("--stream/--no-stream", help="Stream audio while generating."),
    ] = True,
    play: Annotated[
        bool,
        typer.Option("--play/--no-play", help="Play audio through speakers."),
    ] = True,
    latency_tier: Annotated[
        int,
        typer.Option("--latency-tier", help="Streaming latency tier (0=default, 1-4 lower latency)."),
    ] = 0,
    speed: Annotated[
        float,
        typer.Option("--speed", help="Speech speed multiplier (e.g. 1.1 faster, 0.9 slower)."),
    ] = 1.0,
    rate: Annotated[
        int,
        typer.Option("--rate", "-r", help="Words per minute; overrides --speed (175 wpm = 1.0)."),
    ] = 0,
    input_file: Annotated[
        str | None,
        typer.Option("--input-file", "-f", help="Read text from file ('-' for stdin)."),
    ] = None,
    stability: Annotated[
        float | None,
        typer.Option("--stability", help="Voice stability (0..1)."),
    ] = None,
    similarity: Annotated[
        float | None,
        typer.Option("--similarity", "--similarity-boost", help="Voice similarity boost (0..1)."),
    ] = None,
    style: Annotated[
        float | None,
        typer.Option("--style", help="Voice style exaggeration (0..1)."),
    ] = None,
    speaker_boost: Annotated[
        bool,
        typer.Option("--speaker-boost", help="Enable speaker boost."),
    ] = False,
    no_speaker_boost: Annotated[
        bool,
        typer.Option("--no-speaker-boost", help="Disable speaker boost."),
    ] = False,
    seed: Annotated[
        int | None,
        typer.Option("--seed", help="Best-effort deterministic seed (0..4294967295)."),
    ] = None,
    normalize: Annotated[
        str | None,
        typer.Option("--normalize", help="Text normalization: auto|on|off."),
    ] = None,
    lang: Annotated[
        str | None,
        typer.Option("--lang", help="2-letter ISO 639-1 language code."),
    ] = None,
    metrics: Annotated[
        bool,
        typer.Option("--metrics", help="Print request metrics to stderr."),
    ] = False,
    volume: Annotated[
        float | None,
        typer.Option("--volume", help="MiniMax voice volume (0..10)."),
    ] = None,
    pitch: Annotated[
        int | None,
        typer.Option("--pitch", help="MiniMax voice pitch (-12..12)."),
    ] = None,
    emotion: Annotated[
        str | None,
        typer.Option("--emotion", help="MiniMax voice emotion."),
    ] = None,
    language: Annotated[
        str | None,
        typer.Option("--language", help="MiniMax language boost (e.g. English)."),
    ] = None,
    accent: Annotated[
        str | None,
        typer.Option("--accent", help="Alias for --language."),
    ] = None,
    tone: Annotated[
        list[str] | None,
        typer.Option("--tone", help="MiniMax pronunciation override, repeatable (e.g. 'omg/oh my god')."),
    ] = None,
    text_normalization: Annotated[
        bool,
        typer.Option("--text-normalization", help="MiniMax text normalization."),
    ] = False,
    latex_read: Annotated[
        bool,
        typer.Option("--latex-read", help="MiniMax LaTeX formula reading."),
    ] = False,
    continuous_sound: Annotated[
        bool,
        typer.Option("--continuous-sound", help="MiniMax continuous sound."),
    ] = False,
    voice_modify_pitch: Annotated[
        int | None,
        typer.Option("--voice-modify-pitch", help="MiniMax voice modify pitch (-100..100)."),
    ] = None,
    voice_modify_intensity: Annotated[
        int | None,
        typer.Option("--voice-modify-intensity", help="MiniMax voice modify intensity (-100..100)."),
    ] = None,
    voice_modify_timbre: Annotated[
        int | None,
        typer.Option("--voice-modify-timbre", help="MiniMax voice modify timbre (-100..100)."),
    ] = None,
    voice_modify_sound_effects: Annotated[
        str | None,
        typer.Option("--voice-modify-sound-effects", help="MiniMax sound effect (e.g. robotic)."),
    ] = None,
    api_key: ApiKeyOption = None,
    api_key_file: ApiKeyFileOption = None,
    base_url: BaseUrlOption = None,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Speak text through the selected provider."""

    run_logger = RunLogger(verbose=verbose)
    try:
        config = _load_config(config_file)
        effective_model = normalize_optional_string(model_id) or config.model_id
        provider = Provider.from_model_id(effective_model)
        resolved_key = resolve_api_key(provider, api_key=api_key, api_key_file=api_key_file)

        speed_explicit = _explicit(ctx, "speed") or rate > 0
        effective_speed = apply_rate_and_speed(
            speed if _explicit(ctx, "speed") else config.speed,
            rate,
        )
        effective_stream = stream if _explicit(ctx, "stream") else config.stream
        plan = plan_output(
            provider,
            output_format=normalize_optional_string(output_format) or config.output_format,
            play=play if _explicit(ctx, "play") else config.play,
            play_explicit=_explicit(ctx, "play"),
            output_path=output,
        )

        if provider is Provider.MINIMAX:
            options = build_minimax_options(
                output_format=plan.output_format,
                format_explicit=_explicit(ctx, "output_format") or output is not None,
                stream=effective_stream,
                play=plan.play,
                speed=effective_speed if speed_explicit else None,
                volume=volume,
                pitch=pitch,
                emotion=emotion,
                language=language,
                accent=accent,
                tone=tone,
                text_normalization=True if text_normalization else None,
                latex_read=True if latex_read else None,
                continuous_sound=True if continuous_sound else None,
                voice_modify_pitch=voice_modify_pitch,
                voice_modify_intensity=voice_modify_intensity,
                voice_modify_timbre=voice_modify_timbre,
                voice_modify_sound_effects=voice_modify_sound_effects,
            )
        else:
            options = build_elevenlabs_options(
                effective_model,
                stability=stability,
                similarity=similarity,
                style=style,
                speaker_boost=speaker_boost,
                no_speaker_boost=no_speaker_boost,
                seed=seed,
                normalize=normalize,
                lang=lang,
                latency_tier=latency_tier,
            )

        selection = resolve_voice_selection(
            provider,
            voice=voice,
            voice_id=voice_id,
            default_voice=config.voice,
        )
        client = ProviderFactory.create(
            provider,
            resolved_key,
            resolve_base_url(provider, base_url or config.base_url),
        )
        orchestrator = SpeakOrchestrator(
            client,
            provider,
            run_logger=run_logger,
            player=play_to_speakers,
            config=config,
        )
        orchestrator.run(
            SpeakInvocation(
                voice=selection,
                model_id=effective_model,
                output_format=plan.output_format,
                options=options,
                speed=effective_speed,
                stream=effective_stream,
                play=plan.play,
                output_path=plan.output_path,
                text_args=tuple(text or ()),
                input_file=input_file,
                metrics=metrics,
            )
        )
    except Exception as exc:
        exit_with_command_error("speak", exc)


@app.command("voices")
def voices_command(
    ctx: typer.Context,
    search: Annotated[
        str,
        typer.Option("--search", help="Search voices by name (server-side when supported)."),
    ] = "",
    query: Annotated[
        str,
        typer.Option("--query", help="Rank voices by name, description, and labels."),
    ] = "",
    label: Annotated[
        list[str] | None,
        typer.Option("--label", help="Filter by voice label (key=value); repeatable."),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", help="Maximum rows to display (0 = all)."),
    ] = DEFAULT_VOICE_LIMIT,
    try_previews: Annotated[
        bool,
        typer.Option("--try", help="Play preview audio for listed voices."),
    ] = False,
    api_key: ApiKeyOption = None,
    api_key_file: ApiKeyFileOption = None,
    base_url: BaseUrlOption = None,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """List available ElevenLabs voices."""

    run_logger = RunLogger(verbose=verbose)
    try:
        config = _load_config(config_file)
        resolved_key = resolve_api_key(
            Provider.ELEVENLABS,
            api_key=api_key,
            api_key_file=api_key_file,
        )
        request = VoiceListingRequest(
            search=search.strip(),
            query=query.strip(),
            labels=tuple(label or ()),
            limit=limit,
            limit_explicit=_explicit(ctx, "limit"),
            try_previews=try_previews,
        )
        client = ElevenLabsClient(
            api_key=resolved_key,
            base_url=resolve_base_url(Provider.ELEVENLABS, base_url or config.base_url),
        )
        directory = VoiceDirectory(
            client,
            run_logger=run_logger,
            player=play_to_speakers,
            cache_ttl=timedelta(hours=config.voice_cache_ttl_hours),
            listing_timeout_seconds=config.voices_timeout_seconds,
        )
        directory.run(request)
    except Exception as exc:
        exit_with_command_error("voices", exc)


@app.command("credentials")
def credentials_command(
    provider: Annotated[
        Provider,
        typer.Option("--provider", help="Provider whose API key is managed."),
    ] = Provider.ELEVENLABS,
    set_api_key: Annotated[
        bool,
        typer.Option(
            "--set-api-key",
            help="Prompt for API key with hidden input and store it securely.",
        ),
    ] = False,
    clear_api_key: Annotated[
        bool,
        typer.Option(
            "--clear-api-key",
            help="Clear stored API key from secure credential storage.",
        ),
    ] = False,
) -> None:
    """Manage securely stored provider API keys."""

    if set_api_key and clear_api_key:
        exit_with_command_error(
            "credentials",
            ValidationError(
                "`--set-api-key` and `--clear-api-key` cannot be used together",
                hint="Run one credentials action per command invocation.",
            ),
        )

    credential_store = create_credential_store(provider)
    if set_api_key:
        prompted_api_key = normalize_optional_string(
            typer.prompt(
                f"{provider.display_name} API key (hidden input)",
                default="",
                hide_input=True,
                show_default=False,
            )
        )
        if prompted_api_key is None:
            exit_with_command_error(
                "credentials",
                ValidationError(
                    "no API key entered",
                    hint="Provide a non-empty API key when using `--set-api-key`.",
                ),
            )
        try:
            credential_store.set_api_key(prompted_api_key)
        except Exception as exc:
            exit_with_command_error("credentials", exc)
        typer.echo(f"{provider.display_name} API key stored in secure credential storage.")
        return

    if clear_api_key:
        removed = credential_store.clear_api_key()
        if removed:
            typer.echo(f"Stored {provider.display_name} API key cleared from secure credential storage.")
        else:
            typer.echo(f"No stored {provider.display_name} API key found in secure credential storage.")
        return

    availability = "available" if credential_store.is_available() else "unavailable"
    has_stored_key = credential_store.get_api_key() is not None
    status = "present" if has_stored_key else "not set"
    typer.echo(f"Secure credential storage: {availability}")
    typer.echo(f"Stored {provider.display_name} API key: {status}")


def _command_names() -> set[str]:
    return {command.name for command in app.registered_commands if command.name}


def with_default_command(args: Sequence[str]) -> list[str]:
    """Prepend `speak` unless the first argument names a command or asks for help."""

    args = list(args)
    if not args:
        return args
    first = args[0]
    if first.lower() in _command_names() or first in _HELP_ARGS:
        return args
    return ["speak", *args]


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entrypoint for console scripts."""

    args = sys.argv[1:] if argv is None else argv
    app(args=with_default_command(args), prog_name="sag")


if __name__ == "__main__":
    main()
