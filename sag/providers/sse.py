"""Server-sent-event decoding for MiniMax streaming synthesis.

Responsibilities:
- Frame SSE lines into JSON event payloads.
- Hex-decode audio fragments and forward them as soon as they arrive.
- Surface provider errors embedded in events as terminal stream errors.

Key types:
- `EventStreamReader`: byte stream whose bytes are produced by a background
  decode thread that owns the HTTP response.
"""

from __future__ import annotations

import json
import threading
from typing import Any, Callable, Iterable, Iterator

import requests

from ..cancellation import CancelToken
from ..audio.pipe import create_pipe
from ..errors import DecodeError, ProviderResponseError, TransportError


STREAM_FINAL_STATUS = 2
_IGNORED_PREFIXES = (":", "event:", "id:", "retry:")
SSE_READ_CHUNK_BYTES = 128


def check_base_resp(base_resp: Any) -> None:
    """Raise `ProviderResponseError` for a non-zero MiniMax status."""

    if not isinstance(base_resp, dict):
        return
    status_code = base_resp.get("status_code") or 0
    if status_code == 0:
        return
    message = str(base_resp.get("status_msg") or "").strip() or "unknown error"
    raise ProviderResponseError(
        f"minimax error: {message} (code={status_code})",
        failure_kind="provider_error",
    )


def iter_stream_lines(chunks: Iterable[bytes]) -> Iterator[bytes]:
    """Split a chunked byte stream into lines as soon as each newline arrives.

    A CRLF pair split across chunks still ends exactly one line; the trailing
    CR is stripped later by `iter_event_payloads`.
    """

    buffered: list[bytes] = []
    for chunk in chunks:
        if not chunk:
            continue
        *complete, tail = chunk.split(b"\n")
        if complete:
            complete[0] = b"".join(buffered) + complete[0]
            buffered = []
            yield from complete
        if tail:
            buffered.append(tail)
    if buffered:
        yield b"".join(buffered)


def iter_event_payloads(lines: Iterable[str | bytes]) -> Iterator[str]:
    """Yield the payload of every complete event in an SSE line stream.

    `data:` lines are joined until a blank line. A bare line starting with
    `{` or `[` is an event of its own. A trailing event without a closing
    blank line is still yielded at end-of-stream.
    """

    data_lines: list[str] = []
    for raw in lines:
        line = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
        line = line.rstrip("\r\n")
        if not line:
            if data_lines:
                yield "\n".join(data_lines)
                data_lines = []
        elif line.startswith("data:"):
            data_lines.append(line[len("data:"):].strip())
        elif line.startswith(_IGNORED_PREFIXES):
            continue
        else:
            trimmed = line.strip()
            if trimmed.startswith(("{", "[")):
                yield trimmed
    if data_lines:
        yield "\n".join(data_lines)


def decode_event_stream(lines: Iterable[str | bytes], write: Callable[[bytes], Any]) -> None:
    """Decode MiniMax stream events and pass each audio fragment to `write`.

    Returns when an event reports the final status or the lines run out.
    """

    for payload in iter_event_payloads(lines):
        if _handle_payload(payload, write):
            return


def _handle_payload(payload: str, write: Callable[[bytes], Any]) -> bool:
    payload = payload.strip()
    if not payload:
        return False
    try:
        decoded = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"decode stream event: {exc}") from exc

    items = decoded if isinstance(decoded, list) else [decoded]
    for item in items:
        if not isinstance(item, dict):
            raise DecodeError("decode stream event: expected JSON object")
        check_base_resp(item.get("base_resp"))
        data = item.get("data")
        if not isinstance(data, dict):
            continue
        audio_hex = data.get("audio") or ""
        if audio_hex:
            try:
                chunk = bytes.fromhex(audio_hex)
            except (ValueError, TypeError) as exc:
                raise DecodeError(f"decode audio chunk: {exc}") from exc
            if chunk:
                write(chunk)
        if data.get("status") == STREAM_FINAL_STATUS:
            return True
    return False


class EventStreamReader:
    """Byte stream fed by a background thread decoding an SSE response.

    The thread owns the response and closes it on every path. Closing this
    reader, or cancelling the token, closes the response and the pipe.
    """

    def __init__(self, response: requests.Response, *, token: CancelToken | None = None) -> None:
        self._response = response
        self._token = token
        self._reader, self._writer = create_pipe()
        self._closed = False
        self._lock = threading.Lock()
        self._thread = threading.Thread(target=self._run, name="sag-sse", daemon=True)
        self._unregister = token.on_cancel(self._cancel) if token is not None else None
        self._thread.start()

    def read(self, size: int = -1) -> bytes:
        return self._reader.read(size)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        if self._unregister is not None:
            self._unregister()
        self._reader.close()
        self._response.close()
        self._thread.join()

    def _cancel(self) -> None:
        error = self._token.error if self._token is not None else None
        self._reader.close(error)
        self._response.close()

    def _run(self) -> None:
        try:
            chunks = self._response.iter_content(chunk_size=SSE_READ_CHUNK_BYTES)
            decode_event_stream(iter_stream_lines(chunks), self._writer.write)
        except Exception as exc:
            self._writer.close(self._terminal_error(exc))
        else:
            self._writer.close()
        finally:
            self._response.close()

    def _terminal_error(self, exc: Exception) -> Exception:
        if self._token is not None and self._token.error is not None:
            return self._token.error
        if isinstance(exc, requests.RequestException):
            return TransportError(f"audio stream interrupted: {exc}")
        return exc
