"""Core datatypes shared across sag modules.

Responsibilities:
- Represent provider voices and their cached, enriched form.
- Describe one provider-agnostic synthesis request and its per-provider knobs.
- Select the provider once per invocation from the model identifier.

Key types:
- `Voice`, `CachedVoiceEntry`, `Provider`, `SynthesisRequest`,
  `ElevenLabsOptions`, `MiniMaxOptions`, and `VoiceModify`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping


class Provider(str, Enum):
    """Remote TTS service that handles one invocation."""

    ELEVENLABS = "elevenlabs"
    MINIMAX = "minimax"

    @classmethod
    def from_model_id(cls, model_id: str) -> Provider:
        """Select the provider that serves a model identifier."""

        if model_id.strip().lower().startswith("speech-"):
            return cls.MINIMAX
        return cls.ELEVENLABS

    @property
    def display_name(self) -> str:
        """Return the provider's brand name for diagnostics."""

        return "MiniMax" if self is Provider.MINIMAX else "ElevenLabs"


@dataclass(frozen=True, slots=True)
class Voice:
    """A synthesis persona exposed by a provider.

    Attributes:
        voice_id: Opaque provider identifier; the voice's identity.
        name: Human-readable display name.
        category: Provider grouping (for example `premade` or `system`).
        description: Free-text description, when the provider has one.
        labels: Provider labels such as `accent` or `gender`.
        preview_url: URL of a short MP3 sample, when available.
    """

    voice_id: str
    name: str
    category: str = ""
    description: str = ""
    labels: Mapping[str, str] = field(default_factory=dict)
    preview_url: str = ""

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-serializable cache representation."""

        return {
            "voice_id": self.voice_id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "labels": dict(self.labels),
            "preview_url": self.preview_url,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Voice:
        """Build a voice from a provider or cache JSON object.

        Unknown keys are ignored and missing or `null` fields become empty values.
        """

        raw_labels = payload.get("labels")
        labels: dict[str, str] = {}
        if isinstance(raw_labels, Mapping):
            labels = {
                str(key): str(value)
                for key, value in raw_labels.items()
                if value is not None
            }
        return cls(
            voice_id=_text(payload.get("voice_id")),
            name=_text(payload.get("name")),
            category=_text(payload.get("category")),
            description=_text(payload.get("description")),
            labels=labels,
            preview_url=_text(payload.get("preview_url")),
        )


def _text(value: object) -> str:
    """Return a string field value, mapping `None` to an empty string."""

    if value is None:
        return ""
    return str(value)


def merge_voice(base: Voice, details: Voice) -> Voice:
    """Overlay non-empty detail fields on a listed voice.

    A detail record never erases known data: blank detail fields keep the
    listed value.
    """

    return replace(
        base,
        voice_id=details.voice_id or base.voice_id,
        name=details.name or base.name,
        category=details.category or base.category,
        description=details.description or base.description,
        labels=dict(details.labels) if details.labels else base.labels,
        preview_url=details.preview_url or base.preview_url,
    )


@dataclass(frozen=True, slots=True)
class CachedVoiceEntry:
    """Enriched voice detail with the time it was fetched."""

    voice: Voice
    updated_at: datetime

    def is_fresh(self, now: datetime, ttl_seconds: float) -> bool:
        """Return whether this entry is younger than the TTL."""

        return (now - self.updated_at).total_seconds() < ttl_seconds

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-serializable cache representation."""

        return {
            "voice": self.voice.to_payload(),
            "updated_at": self.updated_at.astimezone(timezone.utc).isoformat(),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> CachedVoiceEntry:
        """Parse one cache entry, raising `ValueError` on malformed shapes."""

        voice_payload = payload.get("voice")
        updated_raw = payload.get("updated_at")
        if not isinstance(voice_payload, Mapping) or not isinstance(updated_raw, str):
            raise ValueError("cache entry requires `voice` object and `updated_at` string")
        updated_at = datetime.fromisoformat(updated_raw.replace("Z", "+00:00"))
        if updated_at.tzinfo is None:
            updated_at = updated_at.replace(tzinfo=timezone.utc)
        return cls(voice=Voice.from_payload(voice_payload), updated_at=updated_at)


@dataclass(frozen=True, slots=True)
class ElevenLabsOptions:
    """Validated ElevenLabs knobs; `None` means "not sent"."""

    stability: float | None = None
    similarity_boost: float | None = None
    style: float | None = None
    use_speaker_boost: bool | None = None
    seed: int | None = None
    apply_text_normalization: str | None = None
    language_code: str | None = None
    latency_tier: int = 0


@dataclass(frozen=True, slots=True)
class VoiceModify:
    """MiniMax voice effect settings."""

    pitch: int | None = None
    intensity: int | None = None
    timbre: int | None = None
    sound_effects: str | None = None


@dataclass(frozen=True, slots=True)
class MiniMaxOptions:
    """Validated MiniMax knobs; `None` means "not sent"."""

    speed: float | None = None
    volume: float | None = None
    pitch: int | None = None
    emotion: str | None = None
    text_normalization: bool | None = None
    latex_read: bool | None = None
    audio_format: str | None = None
    language_boost: str | None = None
    continuous_sound: bool | None = None
    tone: tuple[str, ...] = ()
    voice_modify: VoiceModify | None = None


@dataclass(frozen=True, slots=True)
class SynthesisRequest:
    """Provider-agnostic synthesis envelope built once per invocation.

    Attributes:
        text: Text to synthesize.
        model_id: Provider model identifier.
        output_format: Requested audio format identifier.
        speed: Speech speed multiplier.
        options: Provider-specific validated knob set.
    """

    text: str
    model_id: str
    output_format: str
    speed: float = 1.0
    options: ElevenLabsOptions | MiniMaxOptions = field(default_factory=ElevenLabsOptions)

    @property
    def provider(self) -> Provider:
        """Return the provider that matches this request's option set."""

        if isinstance(self.options, MiniMaxOptions):
            return Provider.MINIMAX
        return Provider.ELEVENLABS
