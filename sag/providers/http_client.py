"""Shared HTTP plumbing for provider clients.

Responsibilities:
- Issue `requests` calls bounded by the invocation's cancellation deadline.
- Map HTTP and transport failures to `TransportError` with concise, redacted
  provider messages.
- Expose streaming response bodies as closeable byte streams.
"""

from __future__ import annotations

import json
import re
import socket
from typing import Any, Iterator, Mapping

import requests

from ..cancellation import CancelToken
from ..errors import TransportError


class ResponseByteStream:
    """Read-once byte stream over a streaming `requests` response.

    Closing the stream (directly or through token cancellation) closes the
    underlying connection so blocked reads are released.
    """

    def __init__(
        self,
        response: requests.Response,
        *,
        token: CancelToken | None = None,
        chunk_size: int = 16 * 1024,
    ) -> None:
        self._response = response
        self._chunks: Iterator[bytes] = response.iter_content(chunk_size=chunk_size)
        self._buffer = b""
        self._closed = False
        self._token = token
        self._unregister = token.on_cancel(self.close) if token is not None else None

    def read(self, size: int = -1) -> bytes:
        while not self._buffer:
            if self._closed:
                return b""
            try:
                self._buffer = next(self._chunks)
            except StopIteration:
                return b""
            except requests.RequestException as exc:
                if self._token is not None:
                    self._token.raise_if_cancelled()
                raise TransportError(
                    f"audio stream interrupted: {_BaseHttpClient._short_message(str(exc))}"
                ) from exc
        if size is None or size < 0:
            size = len(self._buffer)
        data, self._buffer = self._buffer[:size], self._buffer[size:]
        return data

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._unregister is not None:
            self._unregister()
        self._response.close()


class _BaseHttpClient:
    """Shared HTTP settings and error mapping used by provider clients."""

    _MAX_PROVIDER_MESSAGE_CHARS = 180
    provider_label = "provider"

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str,
        timeout_seconds: float = 60.0,
    ) -> None:
        """Initialize HTTP client settings."""

        self.api_key = api_key.strip() if isinstance(api_key, str) else ""
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    def _auth_headers(self) -> dict[str, str]:
        raise NotImplementedError

    def _timeout(self, token: CancelToken | None) -> float:
        remaining = token.remaining() if token is not None else None
        if remaining is None:
            return self.timeout_seconds
        return max(0.001, min(self.timeout_seconds, remaining))

    def _request(
        self,
        method: str,
        endpoint_path: str,
        *,
        operation: str,
        token: CancelToken | None = None,
        params: Mapping[str, Any] | None = None,
        payload: Mapping[str, Any] | None = None,
        accept: str = "application/json",
        stream: bool = False,
        url: str | None = None,
    ) -> requests.Response:
        """Execute one request and map failures consistently.

        `operation` names the call in error messages, e.g. `list voices`.
        An absolute `url` replaces `base_url + endpoint_path`.
        """

        if token is not None:
            token.raise_if_cancelled()
        headers = {"Accept": accept, **self._auth_headers()}
        if payload is not None:
            headers["Content-Type"] = "application/json"
        try:
            response = requests.request(
                method,
                url or f"{self.base_url}{endpoint_path}",
                headers=headers,
                params=params,
                json=payload,
                timeout=self._timeout(token),
                stream=stream,
            )
        except requests.RequestException as exc:
            if token is not None:
                token.raise_if_cancelled()
            raise self._transport_error(operation, exc) from exc

        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            response.close()
            raise self._http_error_to_transport_error(operation, exc) from exc
        return response

    def _request_json(self, method: str, endpoint_path: str, **kwargs: Any) -> Any:
        """Execute a request and decode its JSON body."""

        operation = kwargs["operation"]
        response = self._request(method, endpoint_path, **kwargs)
        try:
            return json.loads(bytes(response.content).decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise TransportError(
                f"{operation} failed: {self.provider_label} returned invalid JSON payload.",
                failure_kind="invalid_response",
                status_code=response.status_code,
            ) from exc
        finally:
            response.close()

    @classmethod
    def _transport_error(cls, operation: str, exc: Exception) -> TransportError:
        failure_kind = cls._classify_transport_failure(exc)
        if failure_kind == "timeout":
            detail = f"{operation} failed: request timed out."
        else:
            detail = f"{operation} failed: {cls._short_message(str(exc))}"
        return TransportError(detail, failure_kind=failure_kind)

    @staticmethod
    def _decode_error_body(exc: requests.HTTPError) -> str:
        """Decode an HTTP error body into a best-effort UTF-8 payload string."""

        response = exc.response
        if response is None:
            return ""
        try:
            return bytes(response.content).decode("utf-8", errors="replace").strip()
        except requests.RequestException:
            return ""

    @classmethod
    def _redact_sensitive_tokens(cls, text: str) -> str:
        """Redact API-key-like tokens from provider error content."""

        redacted = re.sub(r"\bsk[-_][A-Za-z0-9_-]{8,}\b", "[redacted-key]", text)
        redacted = re.sub(r"\beyJ[A-Za-z0-9._-]{20,}", "[redacted-key]", redacted)
        redacted = re.sub(
            r"(?i)bearer\s+[A-Za-z0-9._-]{12,}",
            "Bearer [redacted-token]",
            redacted,
        )
        return redacted

    @classmethod
    def _short_message(cls, text: str) -> str:
        """Normalize and cap user-facing provider message length."""

        compact = " ".join(text.split())
        if len(compact) <= cls._MAX_PROVIDER_MESSAGE_CHARS:
            return compact
        return f"{compact[: cls._MAX_PROVIDER_MESSAGE_CHARS - 1]}..."

    @classmethod
    def _extract_provider_message(cls, body: str) -> str:
        """Extract a concise provider-facing message from an error body."""

        if not body:
            return ""
        try:
            payload = json.loads(body)
        except json.JSONDecodeError:
            return cls._short_message(cls._redact_sensitive_tokens(body))

        message: str | None = None
        if isinstance(payload, dict):
            detail = payload.get("detail")
            if isinstance(detail, dict) and isinstance(detail.get("message"), str):
                message = detail["message"]
            elif isinstance(detail, str):
                message = detail
            base_resp = payload.get("base_resp")
            if message is None and isinstance(base_resp, dict):
                status_msg = base_resp.get("status_msg")
                if isinstance(status_msg, str) and status_msg.strip():
                    message = status_msg
        if message is None or not message.strip():
            message = body
        return cls._short_message(cls._redact_sensitive_tokens(message))

    @staticmethod
    def _classify_http_failure(status_code: int, provider_message: str) -> str:
        """Classify HTTP errors into deterministic diagnostic kinds."""

        message_lower = provider_message.lower()
        if status_code == 401 or "api key" in message_lower or "api_key" in message_lower:
            return "invalid_api_key"
        if status_code == 404:
            return "not_found"
        if status_code == 429:
            return "rate_limited"
        if status_code in {408, 504} or "timeout" in message_lower or "timed out" in message_lower:
            return "timeout"
        return "http_error"

    @staticmethod
    def _classify_transport_failure(reason: object) -> str:
        """Classify network-layer failures into deterministic diagnostic kinds."""

        if isinstance(reason, (TimeoutError, socket.timeout, requests.Timeout)):
            return "timeout"
        return "transport"

    def _http_error_to_transport_error(
        self,
        operation: str,
        exc: requests.HTTPError,
    ) -> TransportError:
        """Convert HTTP errors into transport errors carrying status and body."""

        status_code = exc.response.status_code if exc.response is not None else 0
        body = self._decode_error_body(exc)
        provider_message = self._extract_provider_message(body)
        failure_kind = self._classify_http_failure(status_code, provider_message)

        if provider_message:
            detail = f"{operation} failed (HTTP {status_code}): {provider_message}"
        else:
            detail = f"{operation} failed (HTTP {status_code})."

        hint = None
        if failure_kind == "invalid_api_key":
            hint = f"Check the {self.provider_label} API key (`--api-key` or environment)."
        return TransportError(
            detail,
            failure_kind=failure_kind,
            status_code=status_code,
            body=self._short_message(self._redact_sensitive_tokens(body)),
            hint=hint,
        )
