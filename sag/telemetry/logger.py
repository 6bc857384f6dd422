"""Structured run logging utilities.

Responsibilities:
- Emit user-facing notices and warnings on stderr.
- Emit concise, deterministic stage events for `--verbose` runs.
- Format the `--metrics` summary line.
"""

from __future__ import annotations

import sys
from typing import TextIO

from loguru import logger as _loguru_logger


def _sanitize_context_value(value: object) -> str:
    """Convert context values into stable, shell-safe tokens."""

    raw = str(value).strip()
    if not raw:
        return "none"
    return "".join(
        character if character.isalnum() or character in {"-", "_", ".", ":", "/"} else "_"
        for character in raw
    )


def _format_context(context: dict[str, object]) -> str:
    """Serialize context key/value pairs in deterministic key order."""

    if not context:
        return ""
    tokens = [
        f"{key}={_sanitize_context_value(context[key])}"
        for key in sorted(context.keys())
    ]
    return " " + " ".join(tokens)


def format_duration(seconds: float) -> str:
    """Render a duration truncated to milliseconds, e.g. `1.234s` or `87ms`."""

    millis = int(seconds * 1000)
    if millis < 1000:
        return f"{millis}ms"
    return f"{millis / 1000:g}s"


class RunLogger:
    """Emit diagnostics for one CLI invocation.

    Notices, warnings, and metrics are always shown; stage events only at
    debug verbosity.
    """

    def __init__(self, sink: TextIO | None = None, *, verbose: bool = False) -> None:
        """Initialize logger sink and configure deterministic formatting."""

        self._sink = sink or sys.stderr
        _loguru_logger.remove()
        _loguru_logger.add(
            self._sink,
            format="{message}",
            level="DEBUG" if verbose else "INFO",
            colorize=False,
        )

    def _emit(self, level: str, event: str, stage: str, **context: object) -> None:
        """Emit one structured stage event line."""

        line = f"[phase] level={level} stage={stage} event={event}{_format_context(context)}"
        _loguru_logger.debug(line)

    def notice(self, message: str) -> None:
        """Emit a user-facing informational line such as `using voice ...`."""

        _loguru_logger.info(message)

    def warning(self, message: str) -> None:
        """Emit a non-fatal warning prefixed with `warning: `."""

        _loguru_logger.warning(f"warning: {message}")

    def log_stage_start(self, stage: str, **context: object) -> None:
        """Emit a stage-start runtime event."""

        self._emit("INFO", "start", stage, **context)

    def log_stage_complete(self, stage: str, **context: object) -> None:
        """Emit a stage-complete runtime event."""

        self._emit("INFO", "complete", stage, **context)

    def log_stage_failure(self, stage: str, error_type: str) -> None:
        """Emit a stage-failure runtime event without sensitive payload details."""

        self._emit("ERROR", "failure", stage, error_type=error_type)

    def debug(self, message: str) -> None:
        """Emit a free-form debug line."""

        _loguru_logger.debug(message)

    def metrics(
        self,
        *,
        chars: int,
        byte_count: int,
        model_id: str,
        voice_id: str,
        stream: bool,
        latency_tier: int,
        duration_seconds: float,
    ) -> None:
        """Emit the one-line request metrics summary."""

        _loguru_logger.info(
            f"metrics: chars={chars} bytes={byte_count} model={model_id} voice={voice_id} "
            f"stream={'true' if stream else 'false'} latencyTier={latency_tier} "
            f"dur={format_duration(duration_seconds)}"
        )
