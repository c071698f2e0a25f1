"""
Pick the exporter family for each signal from server settings.

``console`` prints every signal to stdout, which is handy when running the
server without a collector. ``file`` writes JSON lines next to the configured
output path. ``otlp`` ships to a collector or hosted backend.
"""

from dataclasses import dataclass
from typing import Any

from opentelemetry.sdk._logs.export import ConsoleLogRecordExporter
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter
from opentelemetry.sdk.trace.export import ConsoleSpanExporter

from ..config import ServerSettings
from .file_exporter import FileLogExporter, FileMetricExporter, FileSpanExporter, sibling_path
from .otlp_exporter import (
    create_otlp_log_exporter,
    create_otlp_metric_exporter,
    create_otlp_trace_exporter,
)


@dataclass
class ExporterSet:
    """One exporter per signal; None means the signal is switched off."""

    spans: Any = None
    metrics: Any = None
    logs: Any = None


def create_exporters(settings: ServerSettings) -> ExporterSet:
    """Build the exporters selected by settings.exporter, honouring per-signal switches."""
    if settings.exporter == "none":
        return ExporterSet()

    if settings.exporter == "console":
        spans = ConsoleSpanExporter()
        metrics = ConsoleMetricExporter()
        logs = ConsoleLogRecordExporter()
    elif settings.exporter == "file":
        spans = FileSpanExporter(settings.output_file)
        metrics = FileMetricExporter(sibling_path(settings.output_file, "_metrics"))
        logs = FileLogExporter(sibling_path(settings.output_file, "_logs"))
    else:
        headers = settings.otlp_headers()
        spans = (
            create_otlp_trace_exporter(settings.endpoint, settings.protocol, headers)
            if settings.traces_enabled
            else None
        )
        metrics = (
            create_otlp_metric_exporter(settings.endpoint, settings.protocol, headers)
            if settings.metrics_enabled
            else None
        )
        logs = (
            create_otlp_log_exporter(settings.endpoint, settings.protocol, headers)
            if settings.logs_enabled
            else None
        )

    return ExporterSet(
        spans=spans if settings.traces_enabled else None,
        metrics=metrics if settings.metrics_enabled else None,
        logs=logs if settings.logs_enabled else None,
    )
