"""Domain exceptions for synthesis, voice resolution, and CLI diagnostics."""

from __future__ import annotations


class SagError(RuntimeError):
    """Base error for failures reported to the CLI user."""

    def __init__(self, detail: str, *, hint: str | None = None) -> None:
        """Initialize an error with a user-facing detail and optional hint."""

        super().__init__(detail)
        self.detail = detail
        self.hint = hint


class ConfigurationError(SagError):
    """Raised when credentials or runtime settings are missing or invalid."""


class ValidationError(SagError):
    """Raised when option values are out of range or conflict with each other."""


class NothingToDoError(ValidationError):
    """Raised when neither playback nor file output was requested."""

    def __init__(self) -> None:
        """Initialize the fixed nothing-to-do diagnostic."""

        super().__init__(
            "nothing to do: enable --play or provide --output",
            hint="Pass `--play` or `--output <file>`.",
        )


class NotFoundError(SagError):
    """Raised when a voice name, query, or label filter matches nothing."""


class NoVoicesAvailableError(NotFoundError):
    """Raised when a provider returns an empty voice list for a default lookup."""


class VoiceNotFoundError(NotFoundError):
    """Raised when a voice name cannot be matched against the provider list."""

    def __init__(self, voice_input: str) -> None:
        """Initialize a not-found error that names the user's input."""

        super().__init__(
            f"voice {voice_input!r} not found",
            hint="Try `sag voices` or `-v '?'` to list available voices.",
        )
        self.voice_input = voice_input


class TransportError(SagError):
    """Raised when an HTTP request fails or returns a non-2xx status."""

    def __init__(
        self,
        detail: str,
        *,
        failure_kind: str = "transport",
        status_code: int | None = None,
        body: str = "",
        hint: str | None = None,
    ) -> None:
        """Initialize transport failure metadata for diagnostics."""

        super().__init__(detail, hint=hint)
        self.failure_kind = failure_kind
        self.status_code = status_code
        self.body = body


class ProviderResponseError(TransportError):
    """Raised when a provider reports an error inside a successful HTTP response."""


class DecodeError(SagError):
    """Raised when a provider payload or audio stream cannot be decoded."""


class PlaybackError(SagError):
    """Raised when the audio output device or codec fails."""


class CacheError(SagError):
    """Raised when the voice cache cannot be read or written."""


class CancelledError(SagError):
    """Raised when an operation observes a cancelled token."""


class DeadlineExceededError(CancelledError):
    """Raised when an operation observes an expired deadline."""
