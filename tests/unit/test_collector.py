from __future__ import annotations

import io
import json
import logging
from datetime import datetime, timezone

from prometheus_client import CollectorRegistry, generate_latest

from aaisp_exporter.chaos.models import LineInfo
from aaisp_exporter.common.errors import DecodeError, TransportError, UpstreamReportedError
from aaisp_exporter.common.logging import build_logger
from aaisp_exporter.exporter.collector import (
    BroadbandCollector,
    ScrapeStatus,
    build_families,
    build_registry,
    map_lines,
)


def _line(line_id: int, tx: int = 1000, rx: int = 8000, monthly: int = 900, remaining: int = 500) -> LineInfo:
    return LineInfo(
        id=line_id,
        login=f"line{line_id}@a.1",
        postcode="RG1 1AA",
        tx_rate=tx,
        rx_rate=rx,
        tx_rate_adjusted=tx - 1,
        quota_monthly=monthly,
        quota_remaining=remaining,
        quota_timestamp=datetime(2023, 6, 15, 11, 0, tzinfo=timezone.utc),
    )


class FakeClient:
    def __init__(self, lines=None, error=None):
        self.lines = lines or []
        self.error = error
        self.calls = 0

    def broadband_info(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.lines)


def _collector(client, stream=None):
    logger = build_logger("debug", "json", stream=stream or io.StringIO())
    return BroadbandCollector(client, logger)


def _samples(families):
    return [sample for family in families for sample in family.samples]


def test_map_lines_emits_four_samples_per_line_in_order():
    samples = map_lines([_line(1), _line(2, tx=3000)])

    assert [(s.name, s.line_id) for s in samples] == [
        ("aaisp_broadband_quota_remaining", "1"),
        ("aaisp_broadband_quota_total", "1"),
        ("aaisp_broadband_tx_rate", "1"),
        ("aaisp_broadband_rx_rate", "1"),
        ("aaisp_broadband_quota_remaining", "2"),
        ("aaisp_broadband_quota_total", "2"),
        ("aaisp_broadband_tx_rate", "2"),
        ("aaisp_broadband_rx_rate", "2"),
    ]
    assert samples[6].value == 3000.0
    assert samples[1].kind == "counter"


def test_map_lines_keeps_duplicate_ids():
    samples = map_lines([_line(7), _line(7)])

    assert len(samples) == 8
    assert {s.line_id for s in samples} == {"7"}


def test_collect_success_emits_four_per_line_plus_success():
    collector = _collector(FakeClient(lines=[_line(1), _line(2), _line(3)]))

    families = list(collector.collect())
    samples = _samples(families)

    success = [s for s in samples if s.name == "aaisp_scrape_success"]
    assert len(success) == 1
    assert success[0].value == 1.0
    assert len(samples) - 1 == 12
    assert collector.status.get() == 1.0


def test_collect_failure_emits_only_success_zero():
    collector = _collector(FakeClient(error=TransportError("timed out")))

    samples = _samples(collector.collect())

    assert len(samples) == 1
    assert samples[0].name == "aaisp_scrape_success"
    assert samples[0].value == 0.0
    assert collector.status.get() == 0.0


def test_collect_with_no_lines_reports_success_only():
    samples = _samples(_collector(FakeClient(lines=[])).collect())

    assert [(s.name, s.value) for s in samples] == [("aaisp_scrape_success", 1.0)]


def test_failure_is_logged_at_debug_with_error_code():
    stream = io.StringIO()
    collector = _collector(FakeClient(error=UpstreamReportedError("Login failed")), stream=stream)

    list(collector.collect())

    record = json.loads(stream.getvalue().splitlines()[0])
    assert record["level"] == "debug"
    assert record["event"] == "SCRAPE_FAIL"
    assert record["error_code"] == "UPSTREAM_REPORTED_ERROR"
    assert "Login failed" in record["message"]


def test_failure_is_not_logged_at_info():
    stream = io.StringIO()
    logger = build_logger("info", "json", stream=stream)
    collector = BroadbandCollector(FakeClient(error=DecodeError("bad json")), logger)

    list(collector.collect())

    assert stream.getvalue() == ""


def test_duplicate_line_ids_are_logged_as_warning():
    stream = io.StringIO()
    collector = _collector(FakeClient(lines=[_line(9), _line(9)]), stream=stream)

    samples = _samples(collector.collect())

    assert len(samples) == 9
    records = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert any(r["event"] == "DUPLICATE_LINES" and r["level"] == "warning" for r in records)


def test_each_collect_call_fetches_once():
    client = FakeClient(lines=[_line(1)])
    collector = _collector(client)

    list(collector.collect())
    list(collector.collect())

    assert client.calls == 2


def test_registration_does_not_call_upstream():
    client = FakeClient(lines=[_line(1)])

    registry = build_registry(_collector(client))

    assert client.calls == 0
    assert isinstance(registry, CollectorRegistry)


def test_exposition_uses_line_id_label_and_counter_suffix():
    registry = CollectorRegistry()
    registry.register(_collector(FakeClient(lines=[_line(32819, tx=1000, rx=8000, monthly=900, remaining=500)])))

    text = generate_latest(registry).decode("utf-8")

    assert "aaisp_scrape_success 1.0" in text
    assert 'aaisp_broadband_quota_remaining{line_id="32819"} 500.0' in text
    assert 'aaisp_broadband_quota_total{line_id="32819"} 900.0' in text
    assert "# TYPE aaisp_broadband_quota counter" in text
    assert 'aaisp_broadband_tx_rate{line_id="32819"} 1000.0' in text
    assert 'aaisp_broadband_rx_rate{line_id="32819"} 8000.0' in text


def test_default_registry_includes_process_metrics():
    registry = build_registry(_collector(FakeClient(lines=[])))

    text = generate_latest(registry).decode("utf-8")

    assert "python_info" in text
    assert "aaisp_scrape_success 1.0" in text


def test_build_families_preserves_sample_order_within_family():
    families = build_families(map_lines([_line(3), _line(1), _line(2)]))

    tx = next(f for f in families if f.name == "aaisp_broadband_tx_rate")
    assert [s.labels["line_id"] for s in tx.samples] == ["3", "1", "2"]


def test_scrape_status_overwrites_and_timestamps():
    status = ScrapeStatus()
    assert status.read() == (None, None)

    status.set(True)
    status.set(False)

    value, updated_at = status.read()
    assert value == 0.0
    assert updated_at is not None and updated_at.tzinfo is not None


def test_logger_name_is_shared():
    assert build_logger("info", "json", stream=io.StringIO()) is logging.getLogger("aaisp_exporter")
