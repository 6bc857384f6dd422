"""Module entrypoint for running sag as ``python -m sag``."""

from __future__ import annotations

from sag.cli import main


if __name__ == "__main__":
    main()
