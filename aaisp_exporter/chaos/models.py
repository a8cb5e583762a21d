"""Records exchanged with the CHAOS v2 API."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from aaisp_exporter.common.errors import ConfigError, DecodeError
from aaisp_exporter.common.time_utils import parse_upstream_timestamp


@dataclass(frozen=True)
class Credentials:
    """Account or control credentials.

    The API accepts either account authentication (number and password) or
    control authentication (login and password). A control login may also be
    passed alongside account authentication.
    """

    account_number: str = ""
    account_password: str = field(default="", repr=False)
    control_login: str = ""
    control_password: str = field(default="", repr=False)

    def __post_init__(self) -> None:
        has_account = bool(self.account_number and self.account_password)
        has_control = bool(self.control_login and self.control_password)
        if not (has_account or has_control):
            raise ConfigError("credentials require an account number/password or control login/password pair")

    def form(self) -> dict[str, str]:
        fields = {
            "account_number": self.account_number,
            "account_password": self.account_password,
            "control_login": self.control_login,
            "control_password": self.control_password,
        }
        return {key: value for key, value in fields.items() if value}


_INTEGER_RE = re.compile(r"-?[0-9]{1,64}")
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def _require(payload: dict, key: str) -> Any:
    if key not in payload:
        raise DecodeError(f"missing field: {key}")
    return payload[key]


def _int_field(payload: dict, key: str) -> int:
    # The API sends most numbers as strings; accept plain JSON numbers too.
    value = _require(payload, key)
    if isinstance(value, bool):
        raise DecodeError(f"field {key} is not numeric: {value!r}")
    if isinstance(value, int):
        number = value
    elif isinstance(value, float) and value.is_integer():
        number = int(value)
    elif isinstance(value, str) and _INTEGER_RE.fullmatch(value):
        number = int(value)
    else:
        raise DecodeError(f"field {key} is not numeric: {value!r:.40}")
    # Values must fit a signed 64-bit integer.
    if not INT64_MIN <= number <= INT64_MAX:
        raise DecodeError(f"field {key} is out of range: {value!r:.40}")
    return number


def _str_field(payload: dict, key: str) -> str:
    value = _require(payload, key)
    if not isinstance(value, str):
        raise DecodeError(f"field {key} is not a string: {value!r}")
    return value


def _timestamp_field(payload: dict, key: str) -> datetime:
    return parse_upstream_timestamp(_require(payload, key))


@dataclass(frozen=True)
class LineInfo:
    id: int
    login: str
    postcode: str
    tx_rate: int
    rx_rate: int
    tx_rate_adjusted: int
    quota_monthly: int
    quota_remaining: int
    quota_timestamp: datetime

    @classmethod
    def from_payload(cls, payload: dict) -> "LineInfo":
        return cls(
            id=_int_field(payload, "id"),
            login=_str_field(payload, "login"),
            postcode=_str_field(payload, "postcode"),
            tx_rate=_int_field(payload, "tx_rate"),
            rx_rate=_int_field(payload, "rx_rate"),
            tx_rate_adjusted=_int_field(payload, "tx_rate_adjusted"),
            quota_monthly=_int_field(payload, "quota_monthly"),
            quota_remaining=_int_field(payload, "quota_remaining"),
            quota_timestamp=_timestamp_field(payload, "quota_timestamp"),
        )


@dataclass(frozen=True)
class LineQuota:
    id: int
    quota_monthly: int
    quota_remaining: int
    quota_timestamp: datetime

    @classmethod
    def from_payload(cls, payload: dict) -> "LineQuota":
        return cls(
            id=_int_field(payload, "id"),
            quota_monthly=_int_field(payload, "quota_monthly"),
            quota_remaining=_int_field(payload, "quota_remaining"),
            quota_timestamp=_timestamp_field(payload, "quota_timestamp"),
        )
