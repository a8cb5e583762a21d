"""Prometheus collector mapping CHAOS broadband lines onto a fixed schema."""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Iterator

from prometheus_client import CollectorRegistry, GCCollector, PlatformCollector, ProcessCollector
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from aaisp_exporter.chaos.client import ChaosClient
from aaisp_exporter.chaos.models import LineInfo
from aaisp_exporter.common.errors import ChaosError
from aaisp_exporter.common.logging import log_event

LINE_LABEL = "line_id"
SCRAPE_SUCCESS = "aaisp_scrape_success"
SCRAPE_SUCCESS_HELP = "Displays whether or not the AAISP API scrape was a success"


@dataclass(frozen=True)
class LineMetric:
    name: str
    kind: str
    documentation: str
    attribute: str


LINE_METRICS = (
    LineMetric("aaisp_broadband_quota_remaining", "gauge", "Quota remaining in bytes", "quota_remaining"),
    LineMetric("aaisp_broadband_quota_total", "counter", "Quota total in bytes", "quota_monthly"),
    LineMetric("aaisp_broadband_tx_rate", "gauge", "Line transmit rate in bits per second", "tx_rate"),
    LineMetric("aaisp_broadband_rx_rate", "gauge", "Line receive rate in bits per second", "rx_rate"),
)


@dataclass(frozen=True)
class MetricSample:
    name: str
    kind: str
    line_id: str
    value: float


def map_lines(lines: Iterable[LineInfo]) -> list[MetricSample]:
    """Four samples per line, in line order. Duplicate ids are kept."""
    samples = []
    for line in lines:
        line_id = str(line.id)
        for metric in LINE_METRICS:
            samples.append(
                MetricSample(
                    name=metric.name,
                    kind=metric.kind,
                    line_id=line_id,
                    value=float(getattr(line, metric.attribute)),
                )
            )
    return samples


def _empty_family(metric: LineMetric) -> Metric:
    if metric.kind == "counter":
        return CounterMetricFamily(metric.name, metric.documentation, labels=[LINE_LABEL])
    return GaugeMetricFamily(metric.name, metric.documentation, labels=[LINE_LABEL])


def _success_family(value: float | None = None) -> GaugeMetricFamily:
    if value is None:
        return GaugeMetricFamily(SCRAPE_SUCCESS, SCRAPE_SUCCESS_HELP)
    return GaugeMetricFamily(SCRAPE_SUCCESS, SCRAPE_SUCCESS_HELP, value=value)


def build_families(samples: Iterable[MetricSample]) -> list[Metric]:
    families = {metric.name: _empty_family(metric) for metric in LINE_METRICS}
    for sample in samples:
        families[sample.name].add_metric([sample.line_id], sample.value)
    return [family for family in families.values() if family.samples]


class ScrapeStatus:
    """Outcome of the most recent scrape, shared across request threads.

    Writes overwrite the previous value; reads never see a half-updated pair.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: float | None = None
        self._updated_at: datetime | None = None

    def set(self, success: bool) -> None:
        with self._lock:
            self._value = 1.0 if success else 0.0
            self._updated_at = datetime.now(tz=timezone.utc)

    def get(self) -> float | None:
        with self._lock:
            return self._value

    def read(self) -> tuple[float | None, datetime | None]:
        with self._lock:
            return self._value, self._updated_at


class BroadbandCollector(Collector):
    def __init__(self, client: ChaosClient, logger: logging.Logger, status: ScrapeStatus | None = None) -> None:
        self.client = client
        self.logger = logger
        self.status = status or ScrapeStatus()

    def snapshot(self) -> tuple[bool, list[MetricSample]]:
        started = time.monotonic()
        try:
            lines = self.client.broadband_info()
        except ChaosError as exc:
            self.status.set(False)
            log_event(
                self.logger,
                f"error getting broadband info: {exc}",
                level=logging.DEBUG,
                event="SCRAPE_FAIL",
                status="error",
                error_code=exc.error_code,
                duration_ms=round((time.monotonic() - started) * 1000),
            )
            return False, []

        samples = map_lines(lines)
        self.status.set(True)
        duplicates = sorted(line_id for line_id, count in Counter(line.id for line in lines).items() if count > 1)
        if duplicates:
            log_event(
                self.logger,
                f"upstream returned duplicate line ids: {duplicates}",
                level=logging.WARNING,
                event="DUPLICATE_LINES",
                status="warning",
            )
        log_event(
            self.logger,
            "scraped broadband info",
            level=logging.DEBUG,
            event="SCRAPE_OK",
            status="ok",
            line_count=len(lines),
            duration_ms=round((time.monotonic() - started) * 1000),
        )
        return True, samples

    def describe(self) -> Iterator[Metric]:
        yield _success_family()
        for metric in LINE_METRICS:
            yield _empty_family(metric)

    def collect(self) -> Iterator[Metric]:
        success, samples = self.snapshot()
        yield _success_family(1.0 if success else 0.0)
        yield from build_families(samples)


def build_registry(collector: BroadbandCollector) -> CollectorRegistry:
    registry = CollectorRegistry()
    ProcessCollector(registry=registry)
    PlatformCollector(registry=registry)
    GCCollector(registry=registry)
    registry.register(collector)
    return registry
