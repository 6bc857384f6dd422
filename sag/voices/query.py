"""Client-side voice filtering and ranking.

Responsibilities:
- Parse and apply `--label key=value` filters.
- Score voices against a free-text `--query` and rank them.
- Provide the name-substring fallback for `--search`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from ..errors import ValidationError
from ..models import Voice


NAME_PHRASE_SCORE = 10
DESCRIPTION_PHRASE_SCORE = 7
LABELS_PHRASE_SCORE = 5
NAME_TOKEN_SCORE = 6
DESCRIPTION_TOKEN_SCORE = 4
LABELS_TOKEN_SCORE = 3
CATEGORY_TOKEN_SCORE = 1

_NON_ALPHANUMERIC = re.compile(r"[\W_]+")


@dataclass(frozen=True, slots=True)
class LabelFilter:
    """One lower-cased `key=value` label constraint."""

    key: str
    value: str


def parse_label_filters(raw_filters: Iterable[str] | None) -> list[LabelFilter]:
    """Parse `key=value` items, skipping blanks and rejecting malformed ones."""

    parsed: list[LabelFilter] = []
    for raw in raw_filters or ():
        item = raw.strip()
        if not item:
            continue
        key, separator, value = item.partition("=")
        key = key.strip().lower()
        value = value.strip().lower()
        if not separator or not key or not value:
            raise ValidationError(f"label filter {raw!r} must be key=value")
        parsed.append(LabelFilter(key=key, value=value))
    return parsed


def _label_value(labels: Mapping[str, str], key: str) -> str | None:
    if key in labels:
        return labels[key]
    for label_key, label_value in labels.items():
        if label_key.lower() == key:
            return label_value
    return None


def matches_all_labels(voice: Voice, filters: Sequence[LabelFilter]) -> bool:
    """Return whether every filter matches one of the voice's labels."""

    if not filters:
        return True
    if not voice.labels:
        return False
    for label_filter in filters:
        value = _label_value(voice.labels, label_filter.key)
        if value is None or value.strip().lower() != label_filter.value:
            return False
    return True


def filter_voices_by_labels(voices: Sequence[Voice], filters: Sequence[LabelFilter]) -> list[Voice]:
    """Keep voices matching all filters; no filters keeps everything."""

    if not filters:
        return list(voices)
    return [voice for voice in voices if matches_all_labels(voice, filters)]


def filter_voices_by_name(voices: Sequence[Voice], search: str) -> list[Voice]:
    """Keep voices whose name contains `search`, case-insensitively."""

    needle = search.lower()
    return [voice for voice in voices if needle in voice.name.lower()]


def tokenize_query(query: str) -> list[str]:
    """Split a query into lower-case alphanumeric tokens of length 2 or more."""

    return [token for token in _NON_ALPHANUMERIC.split(query.lower()) if len(token) >= 2]


def flatten_labels(labels: Mapping[str, str]) -> str:
    """Render labels as `key:value ` pairs for substring matching."""

    return "".join(
        f"{key}:{value} "
        for key, value in labels.items()
        if key or value
    )


def score_voice(voice: Voice, query: str, tokens: Sequence[str]) -> int:
    """Score how well a voice matches a query; zero means no match."""

    name = voice.name.lower()
    description = voice.description.lower()
    labels = flatten_labels(voice.labels).lower()
    category = voice.category.lower()
    phrase = query.lower()

    score = 0
    if phrase:
        if phrase in name:
            score += NAME_PHRASE_SCORE
        elif phrase in description:
            score += DESCRIPTION_PHRASE_SCORE
        elif phrase in labels:
            score += LABELS_PHRASE_SCORE

    for token in tokens:
        if token in name:
            score += NAME_TOKEN_SCORE
        if description and token in description:
            score += DESCRIPTION_TOKEN_SCORE
        if labels and token in labels:
            score += LABELS_TOKEN_SCORE
        if category and token in category:
            score += CATEGORY_TOKEN_SCORE
    return score


def rank_voices_by_query(voices: Sequence[Voice], query: str) -> list[Voice]:
    """Return voices with a positive score, best first.

    Ties are ordered by lower-cased name, then by voice id.
    """

    query = query.strip()
    if not query:
        return list(voices)
    tokens = tokenize_query(query)
    scored: list[tuple[int, Voice]] = []
    for voice in voices:
        score = score_voice(voice, query, tokens)
        if score > 0:
            scored.append((score, voice))
    scored.sort(key=lambda item: (-item[0], item[1].name.lower(), item[1].voice_id))
    return [voice for _, voice in scored]
