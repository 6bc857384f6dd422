"""Top-level package for sag.

sag speaks text through ElevenLabs or MiniMax voices, streaming audio to the
speaker and/or a file. The command-line entry point is `sag.cli.main`.
"""

__all__ = ["__version__"]

__version__ = "0.2.0"
