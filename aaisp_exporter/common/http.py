"""HTTP transport for form-encoded POST requests with a bounded timeout."""

from __future__ import annotations

import time
from dataclasses import dataclass
from types import TracebackType
from typing import Any

import requests

from aaisp_exporter.common.constants import REQUEST_TIMEOUT_SECONDS, USER_AGENT
from aaisp_exporter.common.errors import TransportError

# Bytes are read one at a time so the deadline is checked while a slow
# server drips the body; CHAOS responses are a few kilobytes.
READ_CHUNK_SIZE = 1


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = REQUEST_TIMEOUT_SECONDS
    read: float = REQUEST_TIMEOUT_SECONDS
    total: float = REQUEST_TIMEOUT_SECONDS


@dataclass(frozen=True)
class HttpResponse:
    status_code: int
    content: bytes


class HttpClient:
    def __init__(self, *, timeout: TimeoutConfig | None = None) -> None:
        self.timeout = timeout or TimeoutConfig()
        self.session = requests.Session()

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        out = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        if headers:
            out.update(headers)
        return out

    def _read_body(self, response, url: str, deadline: float, total: float) -> bytes:
        chunks = []
        try:
            for chunk in response.iter_content(chunk_size=READ_CHUNK_SIZE):
                chunks.append(chunk)
                if time.monotonic() > deadline:
                    raise TransportError(f"POST {url} exceeded {total}s deadline")
        except requests.RequestException as exc:
            raise TransportError(f"error reading response body: {exc}") from exc
        return b"".join(chunks)

    def post_form(
        self,
        url: str,
        *,
        data: dict[str, Any],
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> HttpResponse:
        """POST ``data`` form-encoded; the whole exchange is bounded by ``timeout.total``.

        A read that stalls still ends after ``timeout.read`` with a TransportError.
        """
        merged = {"Content-Type": "application/x-www-form-urlencoded"}
        if headers:
            merged.update(headers)
        req_timeout = timeout or self.timeout
        deadline = time.monotonic() + req_timeout.total

        try:
            response = self.session.request(
                method="POST",
                url=url,
                data=data,
                headers=self._headers(merged),
                timeout=(req_timeout.connect, req_timeout.read),
                stream=True,
            )
        except requests.RequestException as exc:
            raise TransportError(f"POST {url} failed: {exc}") from exc

        try:
            if time.monotonic() > deadline:
                raise TransportError(f"POST {url} exceeded {req_timeout.total}s deadline")
            content = self._read_body(response, url, deadline, req_timeout.total)
        finally:
            response.close()

        return HttpResponse(status_code=response.status_code, content=content)
