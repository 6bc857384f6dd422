"""Unit tests for run logging and metrics formatting."""

from __future__ import annotations

import io

import pytest

from sag.telemetry.logger import RunLogger, format_duration


def test_notices_and_warnings_are_always_shown() -> None:
    """Notices print verbatim; warnings gain the `warning: ` prefix."""

    sink = io.StringIO()
    logger = RunLogger(sink)

    logger.notice("using voice Roger (abc)")
    logger.warning("voice cache disabled: no cache directory available")
    logger.log_stage_start("synthesis", provider="elevenlabs")

    assert sink.getvalue().splitlines() == [
        "using voice Roger (abc)",
        "warning: voice cache disabled: no cache directory available",
    ]


def test_stage_events_are_emitted_in_verbose_mode() -> None:
    """Verbose runs should include deterministic, sanitized stage events."""

    sink = io.StringIO()
    logger = RunLogger(sink, verbose=True)

    logger.log_stage_start("synthesis", voice="v 1", provider="minimax")
    logger.log_stage_failure("synthesis", error_type="TransportError")

    assert sink.getvalue().splitlines() == [
        "[phase] level=INFO stage=synthesis event=start provider=minimax voice=v_1",
        "[phase] level=ERROR stage=synthesis event=failure error_type=TransportError",
    ]


def test_metrics_line_format() -> None:
    """The metrics summary should list request facts in a fixed order."""

    sink = io.StringIO()
    RunLogger(sink).metrics(
        chars=11,
        byte_count=2048,
        model_id="eleven_v3",
        voice_id="abc",
        stream=True,
        latency_tier=2,
        duration_seconds=1.2345,
    )

    assert sink.getvalue().strip() == (
        "metrics: chars=11 bytes=2048 model=eleven_v3 voice=abc stream=true latencyTier=2 dur=1.234s"
    )


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [(0.0871, "87ms"), (1.0, "1s"), (12.5, "12.5s")],
)
def test_format_duration(seconds: float, expected: str) -> None:
    """Durations should be truncated to milliseconds."""

    assert format_duration(seconds) == expected
