"""Configuration model and loaders for sag.

Responsibilities:
- Define speak/voices defaults as a typed dataclass.
- Load default overrides from a YAML file.
- Map `--rate` words-per-minute onto the provider speed multiplier.

Key types:
- `SpeakConfig`: defaults for one invocation, before CLI flags are applied.
- `ConfigLoader`: static construction helpers for `SpeakConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from .errors import ConfigurationError, ValidationError
from .parsing import normalize_optional_string, parse_permissive_boolean


DEFAULT_MODEL_ID = "eleven_v3"
DEFAULT_OUTPUT_FORMAT = "mp3_44100_128"
DEFAULT_WPM = 175
MIN_SPEED = 0.5
MAX_SPEED = 2.0


@dataclass(slots=True)
class SpeakConfig:
    """Invocation defaults that CLI flags override.

    Attributes:
        model_id: Model identifier; `speech-*` ids select MiniMax.
        output_format: Provider output format identifier.
        stream: Whether to use streaming synthesis.
        play: Whether to play audio on the speaker.
        speed: Speech speed multiplier.
        synthesis_timeout_seconds: Deadline for one synthesis request.
        voices_timeout_seconds: Deadline for voice listing and search.
        voice_cache_ttl_hours: Freshness window for cached voice metadata.
        voice: Default voice name or id.
        base_url: Provider API base URL override.
    """

    model_id: str = DEFAULT_MODEL_ID
    output_format: str = DEFAULT_OUTPUT_FORMAT
    stream: bool = True
    play: bool = True
    speed: float = 1.0
    synthesis_timeout_seconds: float = 90.0
    voices_timeout_seconds: float = 30.0
    voice_cache_ttl_hours: float = 24.0
    voice: str | None = None
    base_url: str | None = None

    def validate(self) -> None:
        """Validate default values before they reach any provider call."""

        if not self.model_id.strip():
            raise ConfigurationError("`model_id` must be a non-empty string")
        if not self.output_format.strip():
            raise ConfigurationError("`output_format` must be a non-empty string")
        for field_name in (
            "synthesis_timeout_seconds",
            "voices_timeout_seconds",
            "voice_cache_ttl_hours",
        ):
            if getattr(self, field_name) <= 0:
                raise ConfigurationError(f"`{field_name}` must be a positive number")
        validate_speed(self.speed)


def validate_speed(speed: float) -> float:
    """Return `speed` when it lies strictly between 0.5 and 2.0."""

    if speed <= MIN_SPEED or speed >= MAX_SPEED:
        raise ValidationError("speed must be between 0.5 and 2.0 (e.g. 1.1 for 10% faster)")
    return speed


def apply_rate_and_speed(speed: float, rate_wpm: int | None = None) -> float:
    """Resolve the effective speed; a positive `rate_wpm` overrides `speed`."""

    if rate_wpm is not None and rate_wpm > 0:
        mapped = rate_wpm / DEFAULT_WPM
        if mapped <= MIN_SPEED or mapped >= MAX_SPEED:
            raise ValidationError(
                f"rate {rate_wpm} wpm maps to speed {mapped:.2f}, "
                "which is outside the allowed 0.5–2.0 range"
            )
        return mapped
    return validate_speed(speed)


class ConfigLoader:
    """Factory methods for creating `SpeakConfig` from external sources."""

    _SUPPORTED_YAML_KEYS = frozenset(
        {
            "model_id",
            "output_format",
            "stream",
            "play",
            "speed",
            "synthesis_timeout_seconds",
            "voices_timeout_seconds",
            "voice_cache_ttl_hours",
            "voice",
            "base_url",
        }
    )

    @staticmethod
    def from_yaml(path: Path) -> SpeakConfig:
        """Create a validated config from a YAML file."""

        try:
            path_text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"read config {path}: {exc}") from exc
        payload = ConfigLoader._parse_yaml_payload(path_text, path)
        return ConfigLoader._build_config_from_mapping(payload, source_label=f"YAML `{path}`")

    @staticmethod
    def _parse_yaml_payload(raw_text: str, path: Path) -> Mapping[str, Any]:
        """Parse YAML text and enforce a mapping root payload."""

        try:
            payload = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"YAML config `{path}` is not valid YAML: {exc}") from exc
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ConfigurationError(f"YAML config `{path}` must contain a top-level mapping.")
        return payload

    @staticmethod
    def _build_config_from_mapping(payload: Mapping[str, Any], source_label: str) -> SpeakConfig:
        """Build a validated config from a mapping payload."""

        unknown = sorted(str(key) for key in set(payload).difference(ConfigLoader._SUPPORTED_YAML_KEYS))
        if unknown:
            key_list = ", ".join(unknown)
            raise ConfigurationError(f"{source_label} includes unsupported key(s): {key_list}.")

        defaults = SpeakConfig()
        config = SpeakConfig(
            model_id=ConfigLoader._optional_string(payload, "model_id") or defaults.model_id,
            output_format=(
                ConfigLoader._optional_string(payload, "output_format") or defaults.output_format
            ),
            stream=ConfigLoader._optional_boolean(payload, "stream", source_label, defaults.stream),
            play=ConfigLoader._optional_boolean(payload, "play", source_label, defaults.play),
            speed=ConfigLoader._optional_number(payload, "speed", source_label, defaults.speed),
            synthesis_timeout_seconds=ConfigLoader._optional_number(
                payload,
                "synthesis_timeout_seconds",
                source_label,
                defaults.synthesis_timeout_seconds,
            ),
            voices_timeout_seconds=ConfigLoader._optional_number(
                payload,
                "voices_timeout_seconds",
                source_label,
                defaults.voices_timeout_seconds,
            ),
            voice_cache_ttl_hours=ConfigLoader._optional_number(
                payload,
                "voice_cache_ttl_hours",
                source_label,
                defaults.voice_cache_ttl_hours,
            ),
            voice=ConfigLoader._optional_string(payload, "voice"),
            base_url=ConfigLoader._optional_string(payload, "base_url"),
        )
        try:
            config.validate()
        except ValidationError as exc:
            raise ConfigurationError(f"{source_label}: {exc.detail}") from exc
        return config

    @staticmethod
    def _optional_string(payload: Mapping[str, Any], key: str) -> str | None:
        """Read an optional string field and normalize blank values to `None`."""

        if key not in payload:
            return None
        return normalize_optional_string(payload[key])

    @staticmethod
    def _optional_boolean(
        payload: Mapping[str, Any], key: str, source_label: str, default: bool
    ) -> bool:
        """Read and validate a boolean field from a payload."""

        if key not in payload:
            return default
        parsed = parse_permissive_boolean(payload[key])
        if parsed is None:
            raise ConfigurationError(
                f"{source_label} field `{key}` must be a boolean value "
                "(`true`/`false`, `1`/`0`, `yes`/`no`)."
            )
        return parsed

    @staticmethod
    def _optional_number(
        payload: Mapping[str, Any], key: str, source_label: str, default: float
    ) -> float:
        """Read a numeric field, accepting ints, floats, and numeric strings."""

        if key not in payload or payload[key] is None:
            return default
        raw_value = payload[key]
        if isinstance(raw_value, bool):
            raise ConfigurationError(f"{source_label} field `{key}` must be a number.")
        try:
            return float(raw_value)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"{source_label} field `{key}` must be a number.") from exc
