"""Unit tests for resolving voice input to provider voice ids."""

from __future__ import annotations

import io
from typing import Any

import pytest

from sag.errors import NoVoicesAvailableError, TransportError, VoiceNotFoundError
from sag.models import Provider, Voice
from sag.telemetry.logger import RunLogger
from sag.voices.resolver import VoiceResolver, find_voice_by_name, looks_like_voice_id
from tests.doubles import FakeVoiceClient

ROGER = Voice(voice_id="CwhRBWXzGAHq8TQ4Fs17", name="Roger", category="premade")
SARAH = Voice(voice_id="EXAVITQu4vr4xnSDxMaL", name="Sarah", category="premade")
NARRATOR = Voice(voice_id="nrt000000000000001", name="Deep Narrator Voice", category="cloned")


def _resolver(client: FakeVoiceClient, provider: Provider = Provider.ELEVENLABS, **kwargs: Any) -> tuple[VoiceResolver, io.StringIO]:
    sink = io.StringIO()
    resolver = VoiceResolver(client, provider, logger=RunLogger(sink), **kwargs)
    return resolver, sink


def test_empty_input_defaults_to_first_listed_voice() -> None:
    """No voice input should pick the first listed voice and say so."""

    resolver, sink = _resolver(FakeVoiceClient([ROGER, SARAH]))

    assert resolver.resolve("  ") == ROGER.voice_id
    assert f"defaulting to voice Roger ({ROGER.voice_id})" in sink.getvalue()


def test_empty_input_with_no_voices_names_the_provider_env_var() -> None:
    """An empty listing should ask for an explicit voice or env var."""

    resolver, _ = _resolver(FakeVoiceClient([]))

    with pytest.raises(NoVoicesAvailableError, match="specify --voice or set ELEVENLABS_VOICE_ID"):
        resolver.resolve(None)


def test_empty_input_listing_failure_is_wrapped() -> None:
    """A listing failure during default selection should be a transport error."""

    resolver, _ = _resolver(FakeVoiceClient(list_error=TransportError("list voices failed (HTTP 500).")))

    with pytest.raises(TransportError, match="voice not specified and failed to fetch voices"):
        resolver.resolve("")


def test_question_mark_prints_directory_and_returns_empty_id() -> None:
    """`?` should print the voice table and resolve to nothing."""

    printed: list[tuple[list[Voice], bool]] = []
    client = FakeVoiceClient([ROGER, SARAH], describes_voices=True)
    resolver, _ = _resolver(
        client,
        echo_table=lambda voices, include_description=False: printed.append((list(voices), include_description)),
    )

    assert resolver.resolve("?") == ""
    assert printed == [([ROGER, SARAH], True)]


def test_forced_id_bypasses_lookup() -> None:
    """A forced id should be returned unchanged without provider calls."""

    client = FakeVoiceClient([ROGER])
    resolver, _ = _resolver(client)

    assert resolver.resolve("Roger", force_id=True) == "Roger"
    assert client.list_calls == 0
    assert client.search_calls == []


def test_id_like_input_with_digit_is_used_directly() -> None:
    """Long space-free input containing a digit should pass through as an id."""

    client = FakeVoiceClient([ROGER])
    resolver, _ = _resolver(client)

    assert resolver.resolve("21m00Tcm4TlvDq8ikWAM") == "21m00Tcm4TlvDq8ikWAM"
    assert client.list_calls == 0


def test_id_like_input_without_digit_prefers_exact_name_match() -> None:
    """Digit-free id-like input should match a voice name exactly before passing through."""

    long_named = Voice(voice_id="v-long", name="Winterlongstorm")
    client = FakeVoiceClient([ROGER, long_named])
    resolver, sink = _resolver(client)

    assert resolver.resolve("WINTERLONGSTORM") == "v-long"
    assert "using voice Winterlongstorm (v-long)" in sink.getvalue()
    assert resolver.resolve("Unmatchedlongname") == "Unmatchedlongname"
    assert client.list_calls == 2
    assert client.search_calls == []


def test_name_is_resolved_through_server_search() -> None:
    """Short names should use search results and match by substring."""

    client = FakeVoiceClient([ROGER, SARAH])
    resolver, sink = _resolver(client)

    assert resolver.resolve("rog") == ROGER.voice_id
    assert client.search_calls == [("rog", 100)]
    assert client.list_calls == 0
    assert f"using voice Roger ({ROGER.voice_id})" in sink.getvalue()


def test_unique_substring_resolves_to_that_voice() -> None:
    """A query contained in exactly one voice name should resolve to it."""

    client = FakeVoiceClient(
        [Voice(voice_id="id1", name="Alpha"), Voice(voice_id="id2", name="Roger - Casual")]
    )
    resolver, sink = _resolver(client)

    assert resolver.resolve("roger") == "id2"
    assert "using voice Roger - Casual (id2)" in sink.getvalue()


def test_search_failure_falls_back_to_full_listing() -> None:
    """A failed search should fall back to matching the full voice list."""

    client = FakeVoiceClient([ROGER, SARAH], search_error=TransportError("search voices failed (HTTP 500)."))
    resolver, _ = _resolver(client)

    assert resolver.resolve("Sarah") == SARAH.voice_id
    assert client.list_calls == 1


def test_exact_name_wins_over_earlier_substring_match() -> None:
    """An exact name match should win even when a substring match is listed first."""

    sara_long = Voice(voice_id="v-sarah-long", name="Sarah Long")
    client = FakeVoiceClient([sara_long, SARAH], search_results=[])
    resolver, _ = _resolver(client)

    assert resolver.resolve("sarah") == SARAH.voice_id


def test_unknown_name_raises_not_found_with_listing_hint() -> None:
    """A name matching nothing should fail and suggest the voices command."""

    resolver, _ = _resolver(FakeVoiceClient([ROGER]))

    with pytest.raises(VoiceNotFoundError, match="voice 'Nobody' not found") as exc_info:
        resolver.resolve("Nobody")
    assert exc_info.value.hint is not None and "sag voices" in exc_info.value.hint


def test_minimax_matches_id_then_name_then_substring() -> None:
    """MiniMax input should match ids and names case-insensitively."""

    lady = Voice(voice_id="English_Graceful_Lady", name="Graceful Lady", category="system")
    clone = Voice(voice_id="clone-1", name="My Clone", category="voice_cloning")
    client = FakeVoiceClient([lady, clone], supports_search=False, default_voice_env="MINIMAX_VOICE_ID")
    resolver, _ = _resolver(client, Provider.MINIMAX)

    assert resolver.resolve("english_graceful_lady") == "English_Graceful_Lady"
    assert resolver.resolve("my clone") == "clone-1"
    assert resolver.resolve("graceful") == "English_Graceful_Lady"
    assert resolver.resolve("Custom_Voice_Id") == "Custom_Voice_Id"
    assert client.search_calls == []


def test_minimax_listing_failure_passes_input_through() -> None:
    """MiniMax resolution should use the input as an id when listing fails."""

    client = FakeVoiceClient(
        supports_search=False,
        default_voice_env="MINIMAX_VOICE_ID",
        list_error=TransportError("list voices failed (HTTP 503)."),
    )
    resolver, _ = _resolver(client, Provider.MINIMAX)

    assert resolver.resolve("whatever") == "whatever"


def test_looks_like_voice_id_and_find_voice_by_name_helpers() -> None:
    """Helper predicates should follow the id-shape and name-match rules."""

    assert looks_like_voice_id("abcdefghijklmno") is True
    assert looks_like_voice_id("abcdefghijklmn") is False
    assert looks_like_voice_id("abcdefgh ijklmnop") is False
    assert find_voice_by_name([NARRATOR, ROGER], "narrator") is NARRATOR
    assert find_voice_by_name([ROGER], "zzz") is None
