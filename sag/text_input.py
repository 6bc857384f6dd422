"""Resolve the text to synthesize from arguments, an input file, or stdin."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Sequence, TextIO

from .errors import ValidationError


STDIN_MARKER = "-"


def _stdin_is_tty(stream: TextIO) -> bool:
    try:
        return stream.isatty()
    except (AttributeError, ValueError):
        return True


def read_stdin_text(stream: TextIO | None = None) -> str:
    """Read piped stdin, refusing an interactive terminal."""

    stream = sys.stdin if stream is None else stream
    if _stdin_is_tty(stream):
        raise ValidationError(
            "no text provided; pass text args, --input-file, or pipe input"
        )
    text = stream.read().strip()
    if not text:
        raise ValidationError("stdin was empty")
    return text


def resolve_text(
    args: Sequence[str] | None,
    input_file: str | None = None,
    stdin: TextIO | None = None,
) -> str:
    """Return the synthesis text.

    `--input-file -` reads stdin; an input file is trimmed and must not be
    empty; positional args are joined with single spaces; with neither, stdin
    is read when it is piped.
    """

    if input_file:
        if input_file == STDIN_MARKER:
            return read_stdin_text(stdin)
        path = Path(input_file)
        try:
            text = path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ValidationError(f"read input file {input_file}: {exc}") from exc
        if not text:
            raise ValidationError("input file was empty")
        return text

    if args:
        return " ".join(args)
    return read_stdin_text(stdin)
