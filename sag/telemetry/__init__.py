"""Run diagnostics for CLI invocations."""

from .logger import RunLogger

__all__ = ["RunLogger"]
