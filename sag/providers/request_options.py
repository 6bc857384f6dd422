"""Validated request knob builders for both providers.

Every builder takes raw option values where `None` means "flag not given"
and raises `ValidationError` before any network call when a value is out of
range or conflicts with another option.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from ..errors import ValidationError
from ..models import ElevenLabsOptions, MiniMaxOptions, Provider, VoiceModify


ELEVEN_V3_MODEL_ID = "eleven_v3"
ELEVEN_V3_STABILITY_VALUES = (0.0, 0.5, 1.0)
MAX_SEED = 4294967295
NORMALIZE_VALUES = frozenset({"auto", "on", "off"})
MINIMAX_FORMATS = frozenset({"mp3", "wav", "flac"})

_ELEVENLABS_EXTENSION_FORMATS = {
    ".mp3": "mp3_44100_128",
    ".wav": "pcm_44100",
    ".wave": "pcm_44100",
}
_MINIMAX_EXTENSION_FORMATS = {
    ".mp3": "mp3",
    ".wav": "wav",
    ".wave": "wav",
    ".flac": "flac",
}


def infer_output_format(provider: Provider, output_path: Path | str) -> str | None:
    """Infer an output format from the output file extension, if known."""

    extension = Path(output_path).suffix.lower()
    if provider is Provider.MINIMAX:
        return _MINIMAX_EXTENSION_FORMATS.get(extension)
    return _ELEVENLABS_EXTENSION_FORMATS.get(extension)


def normalize_minimax_format(output_format: str | None) -> str:
    """Map an ElevenLabs-style or MiniMax format name onto mp3/wav/flac."""

    normalized = (output_format or "").strip().lower()
    if not normalized:
        return "mp3"
    if normalized in MINIMAX_FORMATS:
        return normalized
    if normalized.startswith("mp3_"):
        return "mp3"
    if normalized.startswith("pcm_"):
        return "wav"
    raise ValidationError(
        f"format {normalized!r} not supported for MiniMax (use mp3, wav, flac)"
    )


def _unit_interval(name: str, value: float | None) -> float | None:
    if value is None:
        return None
    if value < 0 or value > 1:
        raise ValidationError(f"{name} must be between 0 and 1")
    return value


def build_elevenlabs_options(
    model_id: str,
    *,
    stability: float | None = None,
    similarity: float | None = None,
    style: float | None = None,
    speaker_boost: bool = False,
    no_speaker_boost: bool = False,
    seed: int | None = None,
    normalize: str | None = None,
    lang: str | None = None,
    latency_tier: int = 0,
) -> ElevenLabsOptions:
    """Validate ElevenLabs knobs and return the option set to send."""

    stability = _unit_interval("stability", stability)
    if stability is not None and model_id == ELEVEN_V3_MODEL_ID:
        if not any(abs(stability - allowed) <= 1e-9 for allowed in ELEVEN_V3_STABILITY_VALUES):
            raise ValidationError(
                "for eleven_v3, stability must be one of 0.0, 0.5, 1.0 "
                "(Creative/Natural/Robust)"
            )
    similarity = _unit_interval("similarity", similarity)
    style = _unit_interval("style", style)

    if speaker_boost and no_speaker_boost:
        raise ValidationError("choose only one of --speaker-boost or --no-speaker-boost")
    use_speaker_boost: bool | None = None
    if speaker_boost:
        use_speaker_boost = True
    elif no_speaker_boost:
        use_speaker_boost = False

    if seed is not None and not 0 <= seed <= MAX_SEED:
        raise ValidationError(f"seed must be between 0 and {MAX_SEED}")

    normalization: str | None = None
    if normalize is not None:
        normalization = normalize.strip().lower()
        if normalization not in NORMALIZE_VALUES:
            raise ValidationError("normalize must be one of: auto, on, off")

    language_code: str | None = None
    if lang is not None:
        language_code = lang.strip().lower()
        if len(language_code) != 2 or not all("a" <= char <= "z" for char in language_code):
            raise ValidationError("lang must be a 2-letter ISO 639-1 code (e.g. en, de, fr)")

    if latency_tier < 0:
        raise ValidationError("latency-tier must be 0 or greater")

    return ElevenLabsOptions(
        stability=stability,
        similarity_boost=similarity,
        style=style,
        use_speaker_boost=use_speaker_boost,
        seed=seed,
        apply_text_normalization=normalization,
        language_code=language_code,
        latency_tier=latency_tier,
    )


def _bounded_int(name: str, value: int | None, low: int, high: int) -> int | None:
    if value is None:
        return None
    if value < low or value > high:
        raise ValidationError(f"{name} must be between {low} and {high}")
    return value


def build_minimax_options(
    *,
    output_format: str | None,
    format_explicit: bool,
    stream: bool,
    play: bool,
    speed: float | None = None,
    volume: float | None = None,
    pitch: int | None = None,
    emotion: str | None = None,
    language: str | None = None,
    accent: str | None = None,
    tone: Sequence[str] | None = None,
    text_normalization: bool | None = None,
    latex_read: bool | None = None,
    continuous_sound: bool | None = None,
    voice_modify_pitch: int | None = None,
    voice_modify_intensity: int | None = None,
    voice_modify_timbre: int | None = None,
    voice_modify_sound_effects: str | None = None,
) -> MiniMaxOptions:
    """Validate MiniMax knobs and return the option set to send.

    `speed` is passed only when the user set `--speed` or `--rate`.
    """

    audio_format: str | None = normalize_minimax_format(output_format)
    if format_explicit:
        if stream and audio_format != "mp3":
            raise ValidationError("MiniMax streaming supports mp3 only; use --no-stream for wav/flac")
        if play and audio_format != "mp3":
            raise ValidationError(
                "MiniMax playback supports mp3 only; use --output without --play for wav/flac"
            )
    else:
        audio_format = None

    if volume is not None and (volume <= 0 or volume > 10):
        raise ValidationError("volume must be between 0 and 10 (exclusive 0)")
    pitch = _bounded_int("pitch", pitch, -12, 12)

    if emotion is not None:
        emotion = emotion.strip()
        if not emotion:
            raise ValidationError("emotion cannot be empty")

    language_boost: str | None = None
    if language is not None or accent is not None:
        lang_value = (language or "").strip()
        accent_value = (accent or "").strip()
        if lang_value and accent_value and lang_value != accent_value:
            raise ValidationError("choose only one of --language or --accent (or set the same value)")
        language_boost = lang_value or accent_value
        if not language_boost:
            raise ValidationError("language/accent cannot be empty")

    tones: list[str] = []
    for entry in tone or ():
        value = entry.strip()
        if not value:
            raise ValidationError("tone entries cannot be empty")
        tones.append(value)

    modify_pitch = _bounded_int("voice-modify-pitch", voice_modify_pitch, -100, 100)
    modify_intensity = _bounded_int("voice-modify-intensity", voice_modify_intensity, -100, 100)
    modify_timbre = _bounded_int("voice-modify-timbre", voice_modify_timbre, -100, 100)
    sound_effects: str | None = None
    if voice_modify_sound_effects is not None:
        sound_effects = voice_modify_sound_effects.strip()
        if not sound_effects:
            raise ValidationError("voice-modify-sound-effects cannot be empty")

    voice_modify: VoiceModify | None = None
    if any(
        value is not None
        for value in (modify_pitch, modify_intensity, modify_timbre, sound_effects)
    ):
        voice_modify = VoiceModify(
            pitch=modify_pitch,
            intensity=modify_intensity,
            timbre=modify_timbre,
            sound_effects=sound_effects,
        )

    return MiniMaxOptions(
        speed=speed,
        volume=volume,
        pitch=pitch,
        emotion=emotion,
        text_normalization=text_normalization,
        latex_read=latex_read,
        audio_format=audio_format,
        language_boost=language_boost,
        continuous_sound=continuous_sound,
        tone=tuple(tones),
        voice_modify=voice_modify,
    )
