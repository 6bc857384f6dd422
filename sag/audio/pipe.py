"""Synchronous in-memory byte pipe connecting producer and consumer threads.

Responsibilities:
- Hand bytes from one writer thread to one reader thread without buffering:
  `write` returns only after the reader has consumed the whole chunk.
- Propagate end-of-stream and terminal errors in both directions.

Key types:
- `PipeReader` / `PipeWriter`: the two ends returned by `create_pipe`.
- `MultiWriter`: fan-out writer used by the tee pipeline.
"""

from __future__ import annotations

import threading
from typing import Protocol, Sequence


class ClosedPipeError(OSError):
    """Raised on reads or writes against a closed pipe end."""


class ByteWriter(Protocol):
    """Minimal writable byte sink."""

    def write(self, data: bytes) -> int:
        """Write all bytes and return the count written."""


class _PipeState:
    """Shared state of one pipe guarded by a condition variable."""

    def __init__(self) -> None:
        self.cond = threading.Condition()
        self.pending = memoryview(b"")
        self.write_closed = False
        self.write_error: BaseException | None = None
        self.read_closed = False
        self.read_error: BaseException | None = None


class PipeReader:
    """Read end of a byte pipe."""

    def __init__(self, state: _PipeState) -> None:
        self._state = state

    def read(self, size: int = -1) -> bytes:
        """Return up to `size` bytes, blocking until data or end-of-stream.

        Returns `b""` at a clean end-of-stream and raises the writer's error
        when the writer closed with one.
        """

        state = self._state
        with state.cond:
            while not state.pending and not state.write_closed and not state.read_closed:
                state.cond.wait()
            if state.read_closed:
                raise ClosedPipeError("read from closed pipe")
            if not state.pending:
                if state.write_error is not None:
                    raise state.write_error
                return b""
            count = len(state.pending) if size is None or size < 0 else min(size, len(state.pending))
            chunk = bytes(state.pending[:count])
            state.pending = state.pending[count:]
            if not state.pending:
                state.cond.notify_all()
            return chunk

    def close(self, error: BaseException | None = None) -> None:
        """Close the read end; pending and future writes fail with `error`."""

        state = self._state
        with state.cond:
            if state.read_closed:
                return
            state.read_closed = True
            state.read_error = error
            state.cond.notify_all()


class PipeWriter:
    """Write end of a byte pipe."""

    def __init__(self, state: _PipeState) -> None:
        self._state = state

    def write(self, data: bytes) -> int:
        """Offer `data` to the reader and block until it is fully consumed."""

        if not data:
            return 0
        state = self._state
        with state.cond:
            while state.pending and not state.read_closed:
                state.cond.wait()
            if state.write_closed:
                raise ClosedPipeError("write to closed pipe")
            if state.read_closed:
                raise state.read_error or ClosedPipeError("write to pipe with closed reader")
            state.pending = memoryview(bytes(data))
            state.cond.notify_all()
            while state.pending and not state.read_closed:
                state.cond.wait()
            if state.pending:
                state.pending = memoryview(b"")
                raise state.read_error or ClosedPipeError("pipe reader closed mid-write")
            return len(data)

    def close(self, error: BaseException | None = None) -> None:
        """Close the write end; the reader sees end-of-stream or `error`."""

        state = self._state
        with state.cond:
            if state.write_closed:
                return
            state.write_closed = True
            state.write_error = error
            state.cond.notify_all()


def create_pipe() -> tuple[PipeReader, PipeWriter]:
    """Return the connected read and write ends of a new pipe."""

    state = _PipeState()
    return PipeReader(state), PipeWriter(state)


class MultiWriter:
    """Write every chunk to each target in order.

    A failing target aborts the write unless it is listed in `detachable`:
    such a target is dropped after its first `ClosedPipeError` and the
    remaining targets keep receiving data.
    """

    def __init__(
        self,
        targets: Sequence[ByteWriter],
        *,
        detachable: Sequence[ByteWriter] = (),
    ) -> None:
        self._targets = list(targets)
        self._detachable = tuple(detachable)

    def write(self, data: bytes) -> int:
        for target in list(self._targets):
            try:
                target.write(data)
            except ClosedPipeError:
                if not any(target is item for item in self._detachable):
                    raise
                self._targets.remove(target)
        return len(data)
