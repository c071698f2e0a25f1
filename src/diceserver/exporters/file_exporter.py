"""
File-based exporters for offline analysis and debugging.

Each signal is written as JSON lines, one record per line:
- spans: one line per finished span
- metrics: one line per metric per collection cycle
- logs: one line per log record
"""

import json
import threading
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from opentelemetry.sdk._logs import ReadableLogRecord
from opentelemetry.sdk._logs.export import LogRecordExporter, LogRecordExportResult
from opentelemetry.sdk.metrics.export import MetricExporter, MetricExportResult, MetricsData
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult


def sibling_path(output_path: str | Path, suffix: str) -> Path:
    """Derive a per-signal file next to output_path (traces.jsonl -> traces_metrics.jsonl)."""
    path = Path(output_path)
    return path.with_name(f"{path.stem}{suffix}{path.suffix or '.jsonl'}")


class _JsonLinesWriter:
    """Append JSON lines to a file; safe to call from exporter worker threads."""

    def __init__(self, output_path: str | Path, append: bool = True):
        self.output_path = Path(output_path)
        self.append = append
        self._lock = threading.Lock()
        self.output_path.parent.mkdir(parents=True, exist_ok=True)

        if not append and self.output_path.exists():
            self.output_path.unlink()

    def write_lines(self, records: list[dict[str, Any]]) -> None:
        with self._lock, open(self.output_path, "a", encoding="utf-8") as f:
            for record in records:
                f.write(json.dumps(record, default=str) + "\n")


def span_to_dict(span: ReadableSpan) -> dict[str, Any]:
    return {
        "name": span.name,
        "trace_id": format(span.context.trace_id, "032x"),
        "span_id": format(span.context.span_id, "016x"),
        "parent_span_id": format(span.parent.span_id, "016x") if span.parent else None,
        "start_time": span.start_time,
        "end_time": span.end_time,
        "status": {
            "status_code": span.status.status_code.name,
            "description": span.status.description,
        },
        "attributes": dict(span.attributes) if span.attributes else {},
        "events": [
            {"name": event.name, "attributes": dict(event.attributes or {})}
            for event in span.events
        ],
        "kind": span.kind.name if span.kind else "INTERNAL",
        "resource": dict(span.resource.attributes) if span.resource else {},
    }


def metrics_to_dicts(metrics_data: MetricsData) -> list[dict[str, Any]]:
    exported_at = datetime.now().isoformat()
    records = []
    for resource_metrics in metrics_data.resource_metrics:
        resource_attrs = (
            dict(resource_metrics.resource.attributes) if resource_metrics.resource else {}
        )
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                points = []
                for dp in metric.data.data_points:
                    point: dict[str, Any] = {
                        "attributes": dict(dp.attributes or {}),
                        "start_time": getattr(dp, "start_time_unix_nano", None),
                        "time": dp.time_unix_nano,
                    }
                    for key in ("value", "count", "sum", "min", "max"):
                        if hasattr(dp, key):
                            point[key] = getattr(dp, key)
                    points.append(point)
                records.append(
                    {
                        "name": metric.name,
                        "description": metric.description,
                        "unit": metric.unit,
                        "scope": scope_metrics.scope.name,
                        "resource": resource_attrs,
                        "timestamp": exported_at,
                        "data_points": points,
                    }
                )
    return records


def log_to_dict(readable: ReadableLogRecord) -> dict[str, Any]:
    record = readable.log_record
    return {
        "timestamp": record.timestamp,
        "observed_timestamp": record.observed_timestamp,
        "severity_number": record.severity_number.value if record.severity_number else None,
        "severity_text": record.severity_text,
        "body": record.body,
        "attributes": dict(record.attributes) if record.attributes else {},
        "trace_id": format(record.trace_id, "032x") if record.trace_id else None,
        "span_id": format(record.span_id, "016x") if record.span_id else None,
        "resource": dict(readable.resource.attributes) if readable.resource else {},
    }


class FileSpanExporter(SpanExporter):
    """Export spans to a JSON-lines file."""

    def __init__(self, output_path: str | Path, append: bool = True):
        self._writer = _JsonLinesWriter(output_path, append)
        self.output_path = self._writer.output_path

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        try:
            self._writer.write_lines([span_to_dict(span) for span in spans])
        except (OSError, TypeError, ValueError):
            return SpanExportResult.FAILURE
        return SpanExportResult.SUCCESS

    def shutdown(self) -> None:
        pass

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return True


class FileMetricExporter(MetricExporter):
    """Export metrics to a JSON-lines file."""

    def __init__(self, output_path: str | Path, append: bool = True):
        super().__init__()
        self._writer = _JsonLinesWriter(output_path, append)
        self.output_path = self._writer.output_path

    def export(
        self,
        metrics_data: MetricsData,
        timeout_millis: float = 10000,
        **kwargs,
    ) -> MetricExportResult:
        try:
            self._writer.write_lines(metrics_to_dicts(metrics_data))
        except (OSError, TypeError, ValueError):
            return MetricExportResult.FAILURE
        return MetricExportResult.SUCCESS

    def shutdown(self, timeout_millis: float = 30000, **kwargs) -> None:
        pass

    def force_flush(self, timeout_millis: float = 10000) -> bool:
        return True


class FileLogExporter(LogRecordExporter):
    """Export log records to a JSON-lines file."""

    def __init__(self, output_path: str | Path, append: bool = True):
        self._writer = _JsonLinesWriter(output_path, append)
        self.output_path = self._writer.output_path

    def export(self, batch: Sequence[ReadableLogRecord]) -> LogRecordExportResult:
        try:
            self._writer.write_lines([log_to_dict(record) for record in batch])
        except (OSError, TypeError, ValueError):
            return LogRecordExportResult.FAILURE
        return LogRecordExportResult.SUCCESS

    def shutdown(self) -> None:
        pass

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return True
