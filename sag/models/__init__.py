"""Shared typed data models for sag.

This package contains dataclasses used across provider, voice, and audio
modules to avoid cross-module coupling and circular imports.
"""

from .datatypes import (
    CachedVoiceEntry,
    ElevenLabsOptions,
    MiniMaxOptions,
    Provider,
    SynthesisRequest,
    Voice,
    VoiceModify,
    merge_voice,
)

__all__ = [
    "CachedVoiceEntry",
    "ElevenLabsOptions",
    "MiniMaxOptions",
    "Provider",
    "SynthesisRequest",
    "Voice",
    "VoiceModify",
    "merge_voice",
]
