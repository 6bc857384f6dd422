"""Voice resolution, metadata caching, discovery ranking, and previews."""

from .resolver import VoiceResolver

__all__ = ["VoiceResolver"]
