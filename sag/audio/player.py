"""Speaker playback for MP3 byte streams.

Responsibilities:
- Decode MP3 incrementally and render it to the default output device.
- Own the process-wide output device, opened once at the first stream's
  sample rate and reused afterwards.
- Observe playback progress by polling so cancellation stays responsive.

Key types:
- `AudioDevice`: lock-guarded singleton handle over a `sounddevice` stream.
- `SpeakerPlaybackEngine`: callable playback entry point used by the tee pipeline.
- `PlaybackFunc`: signature of swappable playback callables.
"""

from __future__ import annotations

import atexit
import threading
from collections import deque
from typing import Any, Callable, NoReturn, Protocol

import av
import numpy as np

from ..cancellation import CancelToken
from ..errors import DecodeError, PlaybackError, SagError


PLAYBACK_POLL_INTERVAL_SECONDS = 0.1
OUTPUT_CHANNELS = 2


class AudioSource(Protocol):
    """Forward-only byte source consumed by playback."""

    def read(self, size: int = -1) -> bytes:
        """Return up to `size` bytes, or `b""` at end-of-stream."""


PlaybackFunc = Callable[[AudioSource, CancelToken], None]


class OutputStream(Protocol):
    """Subset of `sounddevice.RawOutputStream` used for playback."""

    latency: Any

    def start(self) -> None: ...

    def write(self, data: bytes) -> Any: ...

    def close(self) -> None: ...


class Decoder(Protocol):
    """Frame-incremental decoder yielding interleaved stereo int16 PCM."""

    sample_rate: int

    def read_block(self) -> bytes | None:
        """Return the next PCM block, or `None` once the stream is exhausted."""

    def close(self) -> None: ...


def _open_sounddevice_stream(sample_rate: int, channels: int) -> OutputStream:
    """Open and start a raw int16 output stream on the default device."""

    import sounddevice

    stream = sounddevice.RawOutputStream(
        samplerate=sample_rate,
        channels=channels,
        dtype="int16",
    )
    stream.start()
    return stream


class AudioDevice:
    """Process-wide output device.

    Most platforms allow one opened output context per process, so the
    device is opened once, at the sample rate of the first decoded stream,
    and later streams must match that rate.
    """

    _shared: AudioDevice | None = None
    _shared_lock = threading.Lock()

    def __init__(
        self,
        stream_factory: Callable[[int, int], OutputStream] = _open_sounddevice_stream,
        channels: int = OUTPUT_CHANNELS,
    ) -> None:
        self._stream_factory = stream_factory
        self._channels = channels
        self._lock = threading.Lock()
        self._stream: OutputStream | None = None
        self._sample_rate: int | None = None
        self._open_error: Exception | None = None

    @classmethod
    def shared(cls) -> AudioDevice:
        """Return the process-wide device, creating the handle on first use."""

        with cls._shared_lock:
            if cls._shared is None:
                cls._shared = cls()
                atexit.register(cls._shared.close)
            return cls._shared

    @property
    def channels(self) -> int:
        return self._channels

    @property
    def sample_rate(self) -> int | None:
        return self._sample_rate

    def acquire(self, sample_rate: int) -> OutputStream:
        """Return the open stream, opening it at `sample_rate` on first use."""

        with self._lock:
            if self._open_error is not None:
                raise PlaybackError(
                    f"audio output unavailable: {self._open_error}"
                ) from self._open_error
            if self._stream is not None:
                if self._sample_rate != sample_rate:
                    raise PlaybackError(
                        f"output device already opened at {self._sample_rate} Hz; "
                        f"got {sample_rate} Hz"
                    )
                return self._stream
            if sample_rate <= 0:
                raise PlaybackError("invalid sample rate")
            try:
                stream = self._stream_factory(sample_rate, self._channels)
            except Exception as exc:
                self._open_error = exc
                raise PlaybackError(f"audio output unavailable: {exc}") from exc
            self._stream = stream
            self._sample_rate = sample_rate
            return stream

    def drain_seconds(self) -> float:
        """Return how long queued audio takes to leave the device buffer."""

        stream = self._stream
        if stream is None:
            return 0.0
        try:
            return max(0.0, float(stream.latency))
        except (TypeError, ValueError):
            return 0.0

    def close(self) -> None:
        """Close the underlying stream; used at interpreter exit."""

        with self._lock:
            if self._stream is not None:
                self._stream.close()
                self._stream = None


class _ForwardReader:
    """Read-only file object handed to PyAV.

    It has no `seek`, so the demuxer treats the input as a live stream and
    pulls bytes only as frames are decoded. A failure raised by the source is
    kept so the decoder can re-raise it unchanged.
    """

    def __init__(self, source: AudioSource) -> None:
        self._source = source
        self.error: Exception | None = None

    def read(self, size: int = -1) -> bytes:
        try:
            return self._source.read(size)
        except Exception as exc:
            self.error = exc
            raise


class PyAVMp3Decoder:
    """MP3 decoder backed by PyAV (FFmpeg) reading a forward-only source.

    The first frame is decoded on open so `sample_rate` reflects the stream
    itself; output blocks are interleaved stereo int16 at that rate.
    """

    def __init__(self, source: AudioSource) -> None:
        self._reader = _ForwardReader(source)
        self._pending: deque[bytes] = deque()
        self._flushed = False
        try:
            self._container = av.open(self._reader, mode="r", format="mp3")
        except Exception as exc:
            self._raise_failure(exc)
        try:
            if not self._container.streams.audio:
                raise DecodeError("decode mp3: no audio stream")
            self._frames = self._container.decode(self._container.streams.audio[0])
            first = self._next_frame()
            if first is None:
                raise DecodeError("decode mp3: no audio frames")
        except Exception:
            self._container.close()
            raise
        self.sample_rate = int(first.sample_rate)
        self._resampler = av.AudioResampler(format="s16", layout="stereo", rate=self.sample_rate)
        self._pending.extend(self._resample(first))

    def read_block(self) -> bytes | None:
        while not self._pending:
            if self._flushed:
                return None
            frame = self._next_frame()
            if frame is None:
                self._flushed = True
            self._pending.extend(self._resample(frame))
        return self._pending.popleft()

    def close(self) -> None:
        self._container.close()

    def _next_frame(self) -> Any:
        try:
            return next(self._frames)
        except StopIteration:
            return None
        except Exception as exc:
            self._raise_failure(exc)

    def _resample(self, frame: Any) -> list[bytes]:
        blocks = []
        for converted in self._resampler.resample(frame):
            pcm = np.ascontiguousarray(converted.to_ndarray(), dtype=np.int16)
            if pcm.size:
                blocks.append(pcm.tobytes())
        return blocks

    def _raise_failure(self, exc: Exception) -> NoReturn:
        source_error = self._reader.error
        if source_error is not None:
            raise source_error
        if isinstance(exc, SagError):
            raise exc
        raise DecodeError(f"decode mp3: {exc}") from exc


def open_mp3_decoder(source: AudioSource) -> Decoder:
    """Open an MP3 decoder that pulls bytes from `source` on demand."""

    return PyAVMp3Decoder(source)


class _Player:
    """Background writer moving decoded blocks into the output stream."""

    def __init__(self, decoder: Decoder, stream: OutputStream, drain_seconds: float) -> None:
        self._decoder = decoder
        self._stream = stream
        self._drain_seconds = drain_seconds
        self._stop = threading.Event()
        self._done = threading.Event()
        self._error: Exception | None = None
        self._thread = threading.Thread(target=self._run, name="sag-player", daemon=True)

    def play(self) -> None:
        self._thread.start()

    def is_playing(self) -> bool:
        return not self._done.is_set()

    def pause(self) -> None:
        self._stop.set()

    def close(self) -> None:
        self._stop.set()
        self._thread.join()

    @property
    def error(self) -> Exception | None:
        return self._error

    def _run(self) -> None:
        try:
            while not self._stop.is_set():
                block = self._decoder.read_block()
                if block is None:
                    break
                self._stream.write(block)
            if not self._stop.is_set():
                self._stop.wait(self._drain_seconds)
        except Exception as exc:
            self._error = exc
        finally:
            self._done.set()


class SpeakerPlaybackEngine:
    """Play MP3 streams on the shared output device.

    Instances are callable with the `PlaybackFunc` signature, so callers can
    swap in a recording stand-in for tests.
    """

    def __init__(
        self,
        device: AudioDevice | None = None,
        decoder_factory: Callable[[AudioSource], Decoder] = open_mp3_decoder,
        poll_interval: float = PLAYBACK_POLL_INTERVAL_SECONDS,
    ) -> None:
        self._device = device
        self._decoder_factory = decoder_factory
        self._poll_interval = poll_interval

    def __call__(self, source: AudioSource, token: CancelToken) -> None:
        self.play(source, token)

    def play(self, source: AudioSource, token: CancelToken) -> None:
        """Block until `source` has been played, fails, or `token` fires."""

        try:
            decoder = self._decoder_factory(source)
        except Exception:
            token.raise_if_cancelled()
            raise

        try:
            device = self._device if self._device is not None else AudioDevice.shared()
            stream = device.acquire(decoder.sample_rate)
            player = _Player(decoder, stream, drain_seconds=device.drain_seconds())
            player.play()
            try:
                self._wait_for_playback(player, token)
            finally:
                player.close()
        finally:
            decoder.close()

    def _wait_for_playback(self, player: _Player, token: CancelToken) -> None:
        while True:
            if not player.is_playing():
                self._raise_player_error(player, token)
                return
            if token.wait(self._poll_interval):
                player.pause()
                token.raise_if_cancelled()

    @staticmethod
    def _raise_player_error(player: _Player, token: CancelToken) -> None:
        error = player.error
        if error is None:
            return
        token.raise_if_cancelled()
        if isinstance(error, (DecodeError, PlaybackError)):
            raise error
        raise PlaybackError(f"playback failed: {error}") from error


def play_to_speakers(source: AudioSource, token: CancelToken) -> None:
    """Play an MP3 stream through the shared speaker engine."""

    SpeakerPlaybackEngine()(source, token)
