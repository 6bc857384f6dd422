"""Voice discovery flow behind `sag voices`.

Responsibilities:
- Fetch voices by server search (falling back to a filtered full listing).
- Hydrate metadata through the on-disk cache when filters or previews need it.
- Apply label filters, query ranking, and the row limit, then print the table.
- Optionally play preview samples for the listed voices.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Callable, Protocol, Sequence

from ..audio.player import PlaybackFunc, play_to_speakers
from ..cancellation import CancelToken
from ..cli_rendering import echo_voice_table
from ..errors import CacheError, NotFoundError, SagError, ValidationError
from ..models import Voice
from ..telemetry.logger import RunLogger
from .cache import (
    VOICE_CACHE_TTL,
    VoiceCache,
    default_cache_path,
    hydrate_voices,
    load_voice_cache,
    save_voice_cache,
)
from .preview import play_voice_preview
from .query import (
    filter_voices_by_labels,
    filter_voices_by_name,
    parse_label_filters,
    rank_voices_by_query,
)


DEFAULT_VOICE_LIMIT = 100


class VoiceDirectoryClient(Protocol):
    def list_voices(self, token: CancelToken | None = None) -> list[Voice]: ...

    def search_voices(
        self, query: str, limit: int, token: CancelToken | None = None
    ) -> list[Voice]: ...

    def get_voice(self, voice_id: str, token: CancelToken | None = None) -> Voice: ...


@dataclass(frozen=True, slots=True)
class VoiceListingRequest:
    """Flags of one `sag voices` run."""

    search: str = ""
    query: str = ""
    labels: Sequence[str] = field(default_factory=tuple)
    limit: int = DEFAULT_VOICE_LIMIT
    limit_explicit: bool = False
    try_previews: bool = False

    def validate(self) -> None:
        has_labels = any(label.strip() for label in self.labels)
        if (
            self.try_previews
            and not self.search
            and not self.query
            and not has_labels
            and not self.limit_explicit
        ):
            raise ValidationError(
                "--try requires --search, --query, --label, or --limit to avoid playing all voices"
            )
        if self.limit < 0:
            raise ValidationError("limit must be 0 or greater")


class VoiceDirectory:
    """List, filter, rank, and preview provider voices."""

    def __init__(
        self,
        client: VoiceDirectoryClient,
        *,
        run_logger: RunLogger,
        player: PlaybackFunc = play_to_speakers,
        cache_path_factory: Callable[[], Path] = default_cache_path,
        cache_ttl: timedelta = VOICE_CACHE_TTL,
        listing_timeout_seconds: float = 30.0,
        echo_table: Callable[..., None] = echo_voice_table,
        preview: Callable[..., None] = play_voice_preview,
    ) -> None:
        self._client = client
        self._logger = run_logger
        self._player = player
        self._cache_path_factory = cache_path_factory
        self._cache_ttl = cache_ttl
        self._listing_timeout_seconds = listing_timeout_seconds
        self._echo_table = echo_table
        self._preview = preview

    def run(self, request: VoiceListingRequest, token: CancelToken | None = None) -> list[Voice]:
        """Print the matching voices and return them."""

        request.validate()
        root = token if token is not None else CancelToken()

        with root.child(self._listing_timeout_seconds) as listing_token:
            voices = self._fetch(request, listing_token)

        label_filters = parse_label_filters(request.labels)
        if request.query or label_filters or request.try_previews:
            voices = self._hydrate(voices, root, warn_on_names_only=bool(request.query or label_filters))

        if label_filters:
            voices = filter_voices_by_labels(voices, label_filters)
            if not voices:
                described = ", ".join(f"{item.key}={item.value}" for item in label_filters)
                raise NotFoundError(f"no voices matched label filters: {described}")

        if request.query:
            voices = rank_voices_by_query(voices, request.query)
            if not voices:
                raise NotFoundError(
                    f"no voices matched query {request.query!r}; try --search or adjust wording"
                )

        if request.limit > 0:
            voices = voices[: request.limit]

        self._echo_table(voices)

        if request.try_previews:
            self._play_previews(voices, root)
        return voices

    def _fetch(self, request: VoiceListingRequest, token: CancelToken) -> list[Voice]:
        if not request.search:
            return self._client.list_voices(token)
        try:
            return self._client.search_voices(request.search, request.limit, token)
        except SagError as exc:
            self._logger.debug(f"voice search failed, filtering full listing: {exc}")
        return filter_voices_by_name(self._client.list_voices(token), request.search)

    def _hydrate(
        self,
        voices: list[Voice],
        token: CancelToken,
        *,
        warn_on_names_only: bool,
    ) -> list[Voice]:
        cache_path: Path | None
        try:
            cache_path = self._cache_path_factory()
        except CacheError as exc:
            self._logger.warning(f"voice cache disabled: {exc}")
            cache_path = None

        cache = VoiceCache()
        if cache_path is not None:
            try:
                cache = load_voice_cache(cache_path)
            except CacheError as exc:
                self._logger.warning(f"failed to load voice cache: {exc}")

        hydrated, meta_count = hydrate_voices(
            self._client,
            voices,
            cache,
            ttl=self._cache_ttl,
            token=token,
        )
        if meta_count == 0 and warn_on_names_only:
            self._logger.warning("voice metadata unavailable; matching on names only")

        if cache_path is not None:
            try:
                save_voice_cache(cache_path, cache)
            except CacheError as exc:
                self._logger.warning(f"failed to save voice cache: {exc}")
        return hydrated

    def _play_previews(self, voices: Sequence[Voice], token: CancelToken) -> None:
        if not voices:
            raise NotFoundError("no voices to preview")
        played = 0
        for voice in voices:
            self._logger.notice(f"preview: {voice.name} ({voice.voice_id})")
            try:
                self._preview(self._client, voice, player=self._player, token=token)
            except SagError as exc:
                self._logger.notice(f"preview failed for {voice.name} ({voice.voice_id}): {exc}")
                continue
            played += 1
        if played == 0:
            raise NotFoundError("no previews played")
