"""Provider HTTP clients, stream decoders, and request builders."""

from .elevenlabs import ElevenLabsClient
from .factory import ProviderFactory, SpeechClient
from .minimax import MiniMaxClient

__all__ = ["ElevenLabsClient", "MiniMaxClient", "ProviderFactory", "SpeechClient"]
