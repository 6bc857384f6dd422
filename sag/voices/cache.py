"""On-disk voice metadata cache and concurrent hydration.

Responsibilities:
- Locate, load, and atomically save `voices.json` in the user cache directory.
- Enrich listed voices with detail records, reusing fresh cache entries and
  fetching stale ones with bounded concurrency.

Key types:
- `VoiceCache`: versioned map of voice id to `CachedVoiceEntry`.
"""

from __future__ import annotations

import json
import os
import sys
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol, Sequence

from loguru import logger

from ..cancellation import CancelToken
from ..errors import CacheError, SagError
from ..models import CachedVoiceEntry, Voice, merge_voice


VOICE_CACHE_VERSION = 1
VOICE_CACHE_TTL = timedelta(hours=24)
VOICE_CACHE_DIR_NAME = "sag"
VOICE_CACHE_FILE_NAME = "voices.json"
VOICE_FETCH_CONCURRENCY = 4


class VoiceDetailsClient(Protocol):
    """Client able to fetch one voice's detail record."""

    def get_voice(self, voice_id: str, token: CancelToken | None = None) -> Voice: ...


@dataclass(slots=True)
class VoiceCache:
    """Versioned voice metadata cache guarded by an internal lock."""

    version: int = VOICE_CACHE_VERSION
    voices: dict[str, CachedVoiceEntry] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def get(self, voice_id: str) -> CachedVoiceEntry | None:
        with self._lock:
            return self.voices.get(voice_id)

    def put(self, voice_id: str, entry: CachedVoiceEntry) -> None:
        with self._lock:
            self.voices[voice_id] = entry

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-serializable cache document."""

        with self._lock:
            return {
                "version": self.version,
                "voices": {
                    voice_id: entry.to_payload()
                    for voice_id, entry in sorted(self.voices.items())
                },
            }

    @classmethod
    def from_payload(cls, payload: Any) -> VoiceCache:
        """Parse a cache document, raising `ValueError` on malformed shapes."""

        if not isinstance(payload, Mapping):
            raise ValueError("voice cache must be a JSON object")
        raw_voices = payload.get("voices") or {}
        if not isinstance(raw_voices, Mapping):
            raise ValueError("voice cache `voices` must be an object")
        voices = {
            str(voice_id): CachedVoiceEntry.from_payload(entry)
            for voice_id, entry in raw_voices.items()
            if isinstance(entry, Mapping)
        }
        version = payload.get("version", VOICE_CACHE_VERSION)
        if not isinstance(version, int):
            raise ValueError("voice cache `version` must be an integer")
        return cls(version=version, voices=voices)


def _user_cache_dir(env: Mapping[str, str]) -> Path | None:
    xdg = env.get("XDG_CACHE_HOME", "").strip()
    if xdg and os.path.isabs(xdg):
        return Path(xdg)
    if sys.platform == "win32":
        local_app_data = env.get("LOCALAPPDATA", "").strip()
        return Path(local_app_data) if local_app_data else None
    home = env.get("HOME", "").strip()
    if not home:
        return None
    if sys.platform == "darwin":
        return Path(home) / "Library" / "Caches"
    return Path(home) / ".cache"


def default_cache_path(env: Mapping[str, str] | None = None) -> Path:
    """Return the voice cache path inside the user cache directory."""

    env = os.environ if env is None else env
    cache_dir = _user_cache_dir(env)
    if cache_dir is None:
        home = env.get("HOME", "").strip() or env.get("USERPROFILE", "").strip()
        if not home:
            raise CacheError("no cache directory available")
        cache_dir = Path(home) / ".cache"
    return cache_dir / VOICE_CACHE_DIR_NAME / VOICE_CACHE_FILE_NAME


def load_voice_cache(path: Path) -> VoiceCache:
    """Load the cache; a missing or undecodable file yields an empty cache."""

    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        return VoiceCache()
    except OSError as exc:
        raise CacheError(f"read {path}: {exc}") from exc
    try:
        return VoiceCache.from_payload(json.loads(raw.decode("utf-8")))
    except ValueError as exc:
        # UnicodeDecodeError and JSONDecodeError are both ValueError.
        logger.debug(f"ignoring unreadable voice cache {path}: {exc}")
        return VoiceCache()


def save_voice_cache(path: Path, cache: VoiceCache) -> None:
    """Write the cache as indented JSON via a temp file and atomic replace."""

    document = json.dumps(cache.to_payload(), indent=2, ensure_ascii=False)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            handle.write(document)
            temp_name = handle.name
        os.replace(temp_name, path)
    except OSError as exc:
        raise CacheError(f"write {path}: {exc}") from exc


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def hydrate_voices(
    client: VoiceDetailsClient,
    voices: Sequence[Voice],
    cache: VoiceCache,
    *,
    ttl: timedelta = VOICE_CACHE_TTL,
    max_workers: int = VOICE_FETCH_CONCURRENCY,
    token: CancelToken | None = None,
    clock: Callable[[], datetime] = _utc_now,
) -> tuple[list[Voice], int]:
    """Return voices enriched with detail metadata, in input order.

    Fresh cache entries are merged without a fetch. Stale or missing ones are
    fetched concurrently; a failed fetch keeps the listed voice. The second
    element counts voices that ended up with metadata.
    """

    if ttl <= timedelta(0):
        ttl = VOICE_CACHE_TTL
    now = clock()
    ttl_seconds = ttl.total_seconds()

    results: list[Voice] = list(voices)
    pending: list[int] = []
    meta_count = 0
    for index, voice in enumerate(voices):
        if not voice.voice_id:
            continue
        cached = cache.get(voice.voice_id)
        if cached is not None and cached.is_fresh(now, ttl_seconds):
            results[index] = merge_voice(voice, cached.voice)
            meta_count += 1
            continue
        pending.append(index)

    if not pending:
        return results, meta_count

    def _fetch(index: int) -> bool:
        voice = voices[index]
        try:
            details = client.get_voice(voice.voice_id, token)
        except SagError as exc:
            logger.debug(f"voice details unavailable for {voice.voice_id}: {exc}")
            return False
        merged = merge_voice(voice, details)
        results[index] = merged
        cache.put(voice.voice_id, CachedVoiceEntry(voice=merged, updated_at=now))
        return True

    with ThreadPoolExecutor(
        max_workers=max(1, max_workers),
        thread_name_prefix="sag-hydrate",
    ) as executor:
        fetched = list(executor.map(_fetch, pending))
    meta_count += sum(1 for ok in fetched if ok)
    return results, meta_count
