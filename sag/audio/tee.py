"""Route one audio byte stream to a file, the speaker, or both.

Responsibilities:
- Refuse to run when neither sink is requested, before reading anything.
- Copy the stream into the output file while feeding playback concurrently.
- Join the background copy on every path and report the copy's byte count.

Error precedence: a copy failure wins over a playback failure. When playback
fails first the pipe reader is closed, the copy detaches from the pipe, and
the file sink still receives the remaining bytes.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import BinaryIO, Protocol

from ..cancellation import CancelToken
from ..errors import NothingToDoError
from .pipe import ByteWriter, ClosedPipeError, MultiWriter, PipeWriter, create_pipe
from .player import PlaybackFunc


COPY_CHUNK_BYTES = 32 * 1024


class AudioByteStream(Protocol):
    """Provider audio stream consumed exactly once."""

    def read(self, size: int = -1) -> bytes: ...

    def close(self) -> None: ...


def tee_stream(
    source: AudioByteStream,
    *,
    output_path: Path | None,
    play: bool,
    player: PlaybackFunc,
    token: CancelToken,
) -> int:
    """Deliver `source` to the requested sinks and return the bytes copied.

    The source is closed before returning, whatever the outcome.
    """

    if not play and output_path is None:
        raise NothingToDoError()

    try:
        if not play:
            with _open_output(output_path) as handle:
                return _copy(source, handle, token)
        return _copy_with_playback(source, output_path, player, token)
    finally:
        source.close()


def tee_buffer(
    data: bytes,
    *,
    output_path: Path | None,
    play: bool,
    player: PlaybackFunc,
    token: CancelToken,
) -> int:
    """Write fully synthesized audio to the file first, then play it."""

    if not play and output_path is None:
        raise NothingToDoError()

    if output_path is not None:
        with _open_output(output_path) as handle:
            handle.write(data)
    if not play:
        return len(data)

    reader, writer = create_pipe()
    unregister = token.on_cancel(lambda: reader.close(token.error))
    try:
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="sag-feed") as executor:
            feed = executor.submit(_feed_pipe, data, writer)
            try:
                player(reader, token)
            finally:
                reader.close()
                feed.result()
    finally:
        unregister()
    return len(data)


def _copy_with_playback(
    source: AudioByteStream,
    output_path: Path | None,
    player: PlaybackFunc,
    token: CancelToken,
) -> int:
    handle = _open_output(output_path) if output_path is not None else None
    reader, writer = create_pipe()
    unregister = token.on_cancel(lambda: reader.close(token.error))
    targets: list[ByteWriter] = [writer] if handle is None else [handle, writer]
    sink = MultiWriter(targets, detachable=(writer,))

    playback_error: Exception | None = None
    try:
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="sag-tee") as executor:
            copy = executor.submit(_copy_into_pipe, source, sink, writer, token)
            try:
                player(reader, token)
            except Exception as exc:
                playback_error = exc
            finally:
                reader.close()
            written = copy.result()
    finally:
        unregister()
        if handle is not None:
            handle.close()

    if playback_error is not None:
        raise playback_error
    return written


def _copy_into_pipe(
    source: AudioByteStream,
    sink: ByteWriter,
    writer: PipeWriter,
    token: CancelToken,
) -> int:
    try:
        written = _copy(source, sink, token)
    except Exception as exc:
        writer.close(exc)
        token.raise_if_cancelled()
        raise
    writer.close()
    return written


def _feed_pipe(data: bytes, writer: PipeWriter) -> None:
    try:
        for start in range(0, len(data), COPY_CHUNK_BYTES):
            writer.write(data[start:start + COPY_CHUNK_BYTES])
    except ClosedPipeError:
        # Playback stopped reading; the file sink is already complete.
        return
    finally:
        writer.close()


def _copy(source: AudioByteStream, sink: ByteWriter, token: CancelToken) -> int:
    total = 0
    while True:
        token.raise_if_cancelled()
        try:
            chunk = source.read(COPY_CHUNK_BYTES)
        except Exception:
            token.raise_if_cancelled()
            raise
        if not chunk:
            return total
        sink.write(chunk)
        total += len(chunk)


def _open_output(path: Path) -> BinaryIO:
    path.parent.mkdir(parents=True, exist_ok=True)
    return path.open("wb")
