"""Read-only client for the Andrews & Arnold CHAOS v2 broadband API."""

from __future__ import annotations

import json
from types import TracebackType
from typing import Callable, TypeVar

from aaisp_exporter.common.constants import DEFAULT_CHAOS_ENDPOINT
from aaisp_exporter.common.errors import DecodeError, UpstreamReportedError, UpstreamStatusError
from aaisp_exporter.common.http import HttpClient, HttpResponse
from aaisp_exporter.chaos.models import Credentials, LineInfo, LineQuota

T = TypeVar("T")

INFO_PATH = "/broadband/info"
QUOTA_PATH = "/broadband/quota"


def _decode_json(content: bytes) -> object:
    try:
        return json.loads(content)
    except (UnicodeDecodeError, ValueError, RecursionError) as exc:
        raise DecodeError(f"invalid JSON payload: {exc}") from exc


def _envelope_error(payload: object) -> str:
    if not isinstance(payload, dict):
        raise DecodeError("response is not a JSON object")
    error = payload.get("error")
    if error is None:
        return ""
    if not isinstance(error, str):
        raise DecodeError(f"error field is not a string: {error!r}")
    return error


def _upstream_error_text(content: bytes) -> str | None:
    # Best effort: non-200 responses may still carry the API's error message.
    try:
        payload = json.loads(content)
    except (UnicodeDecodeError, ValueError, RecursionError):
        return None
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        return payload["error"] or None
    return None


def decode_envelope(response: HttpResponse, key: str, record: Callable[[dict], T]) -> list[T]:
    """Turn a CHAOS response into records, or raise the matching ChaosError."""
    if response.status_code != 200:
        raise UpstreamStatusError(response.status_code, _upstream_error_text(response.content))

    payload = _decode_json(response.content)
    error = _envelope_error(payload)
    if error:
        raise UpstreamReportedError(error)

    items = payload.get(key)
    if items is None:
        return []
    if not isinstance(items, list):
        raise DecodeError(f"{key} field is not a list")

    records = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise DecodeError(f"{key}[{idx}] is not an object")
        try:
            records.append(record(item))
        except DecodeError as exc:
            raise DecodeError(f"{key}[{idx}]: {exc}") from exc
    return records


class ChaosClient:
    """Issues authenticated form POSTs against a fixed CHAOS endpoint.

    Every call makes exactly one request. Failures surface as ``ChaosError``
    subclasses; nothing is retried or cached here.
    """

    def __init__(
        self,
        credentials: Credentials,
        *,
        endpoint: str = DEFAULT_CHAOS_ENDPOINT,
        http_client: HttpClient | None = None,
    ) -> None:
        self.credentials = credentials
        self.endpoint = endpoint.rstrip("/")
        self.http = http_client or HttpClient()

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "ChaosClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _post(self, path: str) -> HttpResponse:
        return self.http.post_form(f"{self.endpoint}{path}", data=self.credentials.form())

    def broadband_info(self) -> list[LineInfo]:
        return decode_envelope(self._post(INFO_PATH), "info", LineInfo.from_payload)

    def broadband_quota(self) -> list[LineQuota]:
        return decode_envelope(self._post(QUOTA_PATH), "quota", LineQuota.from_payload)
