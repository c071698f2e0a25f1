"""Shared fixtures: a local telemetry pipeline backed by in-memory exporters."""

from collections.abc import Iterator

import pytest
from opentelemetry.sdk._logs.export import InMemoryLogRecordExporter
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from diceserver.telemetry import Telemetry, build_resource


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def metric_reader() -> InMemoryMetricReader:
    return InMemoryMetricReader()


@pytest.fixture
def log_exporter() -> InMemoryLogRecordExporter:
    return InMemoryLogRecordExporter()


@pytest.fixture
def telemetry(
    span_exporter: InMemorySpanExporter,
    metric_reader: InMemoryMetricReader,
    log_exporter: InMemoryLogRecordExporter,
) -> Iterator[Telemetry]:
    """Pipeline with every signal captured in memory; globals are left alone."""
    pipeline = Telemetry(
        resource=build_resource(),
        span_exporter=span_exporter,
        log_exporter=log_exporter,
        metric_readers=[metric_reader],
        host_metrics=False,
        install_globals=False,
    )
    yield pipeline
    pipeline.shutdown()


def metric_points(reader: InMemoryMetricReader, name: str) -> list:
    """Collect and return the data points of every metric called ``name``."""
    data = reader.get_metrics_data()
    points: list = []
    if data is None:
        return points
    for resource_metrics in data.resource_metrics:
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                if metric.name == name:
                    points.extend(metric.data.data_points)
    return points
