"""Voice resolution from free-form user input to a provider voice id.

Responsibilities:
- Pick a default voice, print the `?` directory, or pass ids through.
- Match names exactly, then by substring, against provider listings.
- Never invent an id: results are the user's input or a listed voice id.
"""

from __future__ import annotations

from typing import Callable, Protocol, Sequence

from ..cancellation import CancelToken
from ..cli_rendering import echo_voice_table
from ..errors import (
    NoVoicesAvailableError,
    SagError,
    TransportError,
    VoiceNotFoundError,
)
from ..models import Provider, Voice
from ..parsing import contains_digit
from ..telemetry.logger import RunLogger


VOICE_LISTING_TIMEOUT_SECONDS = 30.0
VOICE_ID_MIN_LENGTH = 15
SEARCH_RESULT_LIMIT = 100


class VoiceListingClient(Protocol):
    """Provider client capabilities used for resolution."""

    supports_search: bool
    describes_voices: bool
    default_voice_env: str

    def list_voices(self, token: CancelToken | None = None) -> list[Voice]: ...


def looks_like_voice_id(voice_input: str) -> bool:
    """Return whether input is long and space-free enough to be an id."""

    return len(voice_input) >= VOICE_ID_MIN_LENGTH and " " not in voice_input


def find_voice_by_name(voices: Sequence[Voice], voice_input: str) -> Voice | None:
    """Return the first exact (case-insensitive) name match, then substring match."""

    needle = voice_input.lower()
    for voice in voices:
        if voice.name.lower() == needle:
            return voice
    for voice in voices:
        if needle in voice.name.lower():
            return voice
    return None


class VoiceResolver:
    """Resolve voice input for one provider client."""

    def __init__(
        self,
        client: VoiceListingClient,
        provider: Provider,
        *,
        logger: RunLogger,
        token: CancelToken | None = None,
        echo_table: Callable[..., None] = echo_voice_table,
        listing_timeout_seconds: float = VOICE_LISTING_TIMEOUT_SECONDS,
    ) -> None:
        self._client = client
        self._provider = provider
        self._logger = logger
        self._token = token
        self._echo_table = echo_table
        self._listing_timeout_seconds = listing_timeout_seconds

    def resolve(self, voice_input: str | None, *, force_id: bool = False) -> str:
        """Return a voice id, or `""` when the `?` directory was printed."""

        voice_input = (voice_input or "").strip()
        if not voice_input:
            return self._resolve_default()
        if voice_input == "?":
            self._print_directory()
            return ""
        if force_id:
            return voice_input
        if self._provider is Provider.MINIMAX:
            return self._resolve_minimax(voice_input)
        return self._resolve_elevenlabs(voice_input)

    def _listing_token(self) -> CancelToken:
        if self._token is not None:
            return self._token.child(self._listing_timeout_seconds)
        return CancelToken(self._listing_timeout_seconds)

    def _list_voices(self) -> list[Voice]:
        with self._listing_token() as token:
            return self._client.list_voices(token)

    def _search_voices(self, query: str) -> list[Voice]:
        with self._listing_token() as token:
            return self._client.search_voices(query, SEARCH_RESULT_LIMIT, token)

    def _using(self, voice: Voice) -> str:
        self._logger.notice(f"using voice {voice.name} ({voice.voice_id})")
        return voice.voice_id

    def _resolve_default(self) -> str:
        try:
            voices = self._list_voices()
        except SagError as exc:
            raise TransportError(
                f"voice not specified and failed to fetch voices: {exc}"
            ) from exc
        if not voices:
            raise NoVoicesAvailableError(
                "no voices available; specify --voice or set "
                f"{self._client.default_voice_env}"
            )
        chosen = voices[0]
        self._logger.notice(f"defaulting to voice {chosen.name} ({chosen.voice_id})")
        return chosen.voice_id

    def _print_directory(self) -> None:
        voices = self._list_voices()
        self._echo_table(voices, include_description=self._client.describes_voices)

    def _resolve_elevenlabs(self, voice_input: str) -> str:
        if looks_like_voice_id(voice_input):
            if contains_digit(voice_input):
                return voice_input
            needle = voice_input.lower()
            for voice in self._list_voices():
                if voice.name.lower() == needle:
                    return self._using(voice)
            return voice_input

        match: Voice | None = None
        if self._client.supports_search:
            try:
                match = find_voice_by_name(self._search_voices(voice_input), voice_input)
            except SagError as exc:
                self._logger.debug(f"voice search failed, listing all voices: {exc}")
        if match is None:
            match = find_voice_by_name(self._list_voices(), voice_input)
        if match is None:
            raise VoiceNotFoundError(voice_input)
        return self._using(match)

    def _resolve_minimax(self, voice_input: str) -> str:
        try:
            voices = self._list_voices()
        except SagError as exc:
            self._logger.debug(f"voice listing failed, using input as id: {exc}")
            return voice_input
        needle = voice_input.lower()
        for voice in voices:
            if voice.voice_id.lower() == needle or voice.name.lower() == needle:
                return self._using(voice)
        for voice in voices:
            if needle in voice.name.lower():
                return self._using(voice)
        return voice_input
