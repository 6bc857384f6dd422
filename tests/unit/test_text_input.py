"""Unit tests for resolving synthesis text."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from sag.errors import ValidationError
from sag.text_input import read_stdin_text, resolve_text


class TtyInput(io.StringIO):
    def isatty(self) -> bool:
        return True


def test_args_are_joined_with_single_spaces() -> None:
    """Positional words should be joined in order."""

    assert resolve_text(["Hello", "there,", "world"]) == "Hello there, world"


def test_input_file_is_trimmed_and_wins_over_args(tmp_path: Path) -> None:
    """An input file should be read and stripped, ignoring positional args."""

    source = tmp_path / "script.txt"
    source.write_text("\n  Read me aloud.  \n", encoding="utf-8")

    assert resolve_text(["ignored"], str(source)) == "Read me aloud."


def test_input_file_errors(tmp_path: Path) -> None:
    """Missing and blank input files should fail validation."""

    blank = tmp_path / "blank.txt"
    blank.write_text("   \n", encoding="utf-8")

    with pytest.raises(ValidationError, match="read input file"):
        resolve_text(None, str(tmp_path / "missing.txt"))
    with pytest.raises(ValidationError, match="input file was empty"):
        resolve_text(None, str(blank))


def test_dash_input_file_reads_piped_stdin() -> None:
    """`--input-file -` should read stdin even when args are present."""

    assert resolve_text(["ignored"], "-", io.StringIO("  piped text \n")) == "piped text"


def test_stdin_is_used_without_args_or_file() -> None:
    """Piped stdin should be the fallback text source."""

    assert resolve_text([], None, io.StringIO("from pipe")) == "from pipe"


def test_interactive_stdin_is_rejected() -> None:
    """A terminal on stdin should not be read; the user gets guidance instead."""

    with pytest.raises(ValidationError, match="no text provided; pass text args, --input-file, or pipe input"):
        read_stdin_text(TtyInput("typed"))


def test_empty_stdin_is_rejected() -> None:
    """Whitespace-only piped input should fail validation."""

    with pytest.raises(ValidationError, match="stdin was empty"):
        read_stdin_text(io.StringIO(" \n\t"))
