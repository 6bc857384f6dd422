"""Shared parsing helpers for CLI values, environment lookups, and table cells."""

from __future__ import annotations

from typing import Mapping


_BOOLEAN_TOKENS = {
    "1": True,
    "true": True,
    "yes": True,
    "on": True,
    "0": False,
    "false": False,
    "no": False,
    "off": False,
}


def normalize_optional_string(value: object) -> str | None:
    """Return `value` as a stripped string, or `None` when nothing is left."""

    text = "" if value is None else str(value).strip()
    return text or None


def parse_permissive_boolean(value: object) -> bool | None:
    """Read `true`/`yes`/`on`/`1` style tokens; `None` means unrecognized."""

    if isinstance(value, bool):
        return value
    token = normalize_optional_string(value)
    if token is None:
        return None
    return _BOOLEAN_TOKENS.get(token.lower())


def first_env_value(env: Mapping[str, str], *keys: str) -> tuple[str, str] | None:
    """Return the first `(key, value)` pair whose value is non-blank."""

    for key in keys:
        value = normalize_optional_string(env.get(key))
        if value is not None:
            return key, value
    return None


def contains_digit(value: str) -> bool:
    """Return whether the text contains at least one ASCII digit."""

    return any("0" <= character <= "9" for character in value)


def single_line(value: str) -> str:
    """Collapse tabs and newlines so a value fits in one table cell."""

    return value.replace("\t", " ").replace("\r", " ").replace("\n", " ")
