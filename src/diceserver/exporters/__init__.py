"""Telemetry exporters for various backends."""

from .factory import ExporterSet, create_exporters
from .file_exporter import FileLogExporter, FileMetricExporter, FileSpanExporter, sibling_path
from .otlp_exporter import (
    create_otlp_log_exporter,
    create_otlp_metric_exporter,
    create_otlp_trace_exporter,
)

__all__ = [
    "create_otlp_trace_exporter",
    "create_otlp_metric_exporter",
    "create_otlp_log_exporter",
    "FileSpanExporter",
    "FileMetricExporter",
    "FileLogExporter",
    "sibling_path",
    "create_exporters",
    "ExporterSet",
]
