"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics
and voice directory tables.
"""

from __future__ import annotations

from typing import NoReturn, Sequence

import typer

from .errors import SagError
from .models.datatypes import Voice
from .parsing import single_line


_COLUMN_PADDING = 2


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, SagError):
        typer.secho(f"{command_name} failed: {exc.detail}", fg=typer.colors.RED, err=True)
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def format_table(rows: Sequence[Sequence[str]]) -> str:
    """Align rows into space-padded columns; the last column is not padded."""

    if not rows:
        return ""
    column_count = max(len(row) for row in rows)
    widths = [0] * column_count
    for row in rows:
        for index, cell in enumerate(row[:-1]):
            widths[index] = max(widths[index], len(cell))

    lines = []
    for row in rows:
        cells = [
            cell.ljust(widths[index] + _COLUMN_PADDING) if index < len(row) - 1 else cell
            for index, cell in enumerate(row)
        ]
        lines.append("".join(cells))
    return "\n".join(lines) + "\n"


def format_voice_table(voices: Sequence[Voice], *, include_description: bool = False) -> str:
    """Render the `VOICE ID / NAME / CATEGORY [/ DESCRIPTION]` listing."""

    header = ["VOICE ID", "NAME", "CATEGORY"]
    if include_description:
        header.append("DESCRIPTION")
    rows = [header]
    for voice in voices:
        row = [voice.voice_id, voice.name, voice.category]
        if include_description:
            row.append(single_line(voice.description))
        rows.append(row)
    return format_table(rows)


def echo_voice_table(voices: Sequence[Voice], *, include_description: bool = False) -> None:
    """Print the voice listing table to stdout."""

    typer.echo(format_voice_table(voices, include_description=include_description), nl=False)
