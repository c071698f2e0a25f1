"""
Build and own the OpenTelemetry pipeline for the dice server.

One Resource is shared by three providers:
- TracerProvider with a BatchSpanProcessor
- MeterProvider with a PeriodicExportingMetricReader (plus any extra readers)
- LoggerProvider with a BatchLogRecordProcessor, bridged from stdlib logging

A signal without an exporter (or reader) gets no provider; tracers and meters
handed out for it are no-ops.
"""

import logging
from collections.abc import Sequence
from pathlib import Path

from opentelemetry import metrics, trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor, LogRecordExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    MetricExporter,
    MetricReader,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.metrics.view import View
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter

from ..config import DEFAULT_EXPORT_INTERVAL_MS, ServerSettings
from ..config import resource_attributes as config_resource_attributes
from ..config import resource_schema_url
from ..dice import REQUEST_DURATION_NAME, ROLLS_COUNTER_NAME
from ..exporters import create_exporters
from .host_metrics import METER_NAME as HOST_METER_NAME
from .host_metrics import METER_VERSION as HOST_METER_VERSION
from .host_metrics import HostMetrics

logger = logging.getLogger(__name__)

# stdlib logger whose records are exported as OpenTelemetry log records.
BRIDGED_LOGGER_NAME = "diceserver"

# The SDK lowercases instrument names; a View keeps the exported name as written.
CASE_PRESERVED_INSTRUMENTS = (ROLLS_COUNTER_NAME, REQUEST_DURATION_NAME)


def build_resource(path: Path | None = None) -> Resource:
    """Create the service Resource from config/resource.yaml (or built-in defaults)."""
    return Resource.create(config_resource_attributes(path), schema_url=resource_schema_url(path))


class Telemetry:
    """Tracer, meter and logger providers for one process, with a single shutdown."""

    def __init__(
        self,
        resource: Resource,
        span_exporter: SpanExporter | None = None,
        metric_exporter: MetricExporter | None = None,
        log_exporter: LogRecordExporter | None = None,
        export_interval_ms: int = DEFAULT_EXPORT_INTERVAL_MS,
        metric_readers: Sequence[MetricReader] = (),
        host_metrics: bool = True,
        install_globals: bool = True,
    ):
        self.resource = resource
        self.tracer_provider: TracerProvider | None = None
        self.meter_provider: MeterProvider | None = None
        self.logger_provider: LoggerProvider | None = None
        self.host_metrics: HostMetrics | None = None
        self._log_handler: LoggingHandler | None = None
        self._shutdown = False

        if span_exporter is not None:
            self.tracer_provider = TracerProvider(resource=resource)
            self.tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))

        readers = list(metric_readers)
        if metric_exporter is not None:
            readers.append(
                PeriodicExportingMetricReader(
                    metric_exporter,
                    export_interval_millis=export_interval_ms,
                )
            )
        if readers:
            self.meter_provider = MeterProvider(
                resource=resource,
                metric_readers=readers,
                views=[
                    View(instrument_name=name, name=name) for name in CASE_PRESERVED_INSTRUMENTS
                ],
            )

        if log_exporter is not None:
            self.logger_provider = LoggerProvider(resource=resource)
            self.logger_provider.add_log_record_processor(BatchLogRecordProcessor(log_exporter))
            self._attach_log_handler()

        if install_globals:
            self._install_globals()

        if host_metrics and self.meter_provider is not None:
            self.host_metrics = HostMetrics(self.get_meter(HOST_METER_NAME, HOST_METER_VERSION))

        logger.debug(
            "Telemetry initialized: traces=%s metrics=%s logs=%s",
            self.tracer_provider is not None,
            self.meter_provider is not None,
            self.logger_provider is not None,
        )

    @classmethod
    def from_settings(
        cls,
        settings: ServerSettings,
        install_globals: bool = True,
        host_metrics: bool | None = None,
    ) -> "Telemetry":
        """Create exporters from settings and wire them into a new pipeline."""
        exporters = create_exporters(settings)
        return cls(
            resource=build_resource(settings.resource_path),
            span_exporter=exporters.spans,
            metric_exporter=exporters.metrics,
            log_exporter=exporters.logs,
            export_interval_ms=settings.export_interval_ms,
            host_metrics=settings.host_metrics if host_metrics is None else host_metrics,
            install_globals=install_globals,
        )

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    def _attach_log_handler(self) -> None:
        self._log_handler = LoggingHandler(
            level=logging.NOTSET,
            logger_provider=self.logger_provider,
        )
        bridged = logging.getLogger(BRIDGED_LOGGER_NAME)
        # INFO records (server_start, counter_increment) must reach the handler.
        if bridged.level == logging.NOTSET:
            bridged.setLevel(logging.INFO)
        bridged.addHandler(self._log_handler)

    def _install_globals(self) -> None:
        if self.tracer_provider is not None:
            trace.set_tracer_provider(self.tracer_provider)
        if self.meter_provider is not None:
            metrics.set_meter_provider(self.meter_provider)
        if self.logger_provider is not None:
            set_logger_provider(self.logger_provider)

    def get_tracer(self, name: str, version: str | None = None) -> trace.Tracer:
        if self.tracer_provider is None:
            return trace.NoOpTracer()
        return self.tracer_provider.get_tracer(name, version)

    def get_meter(self, name: str, version: str | None = None) -> metrics.Meter:
        if self.meter_provider is None:
            return metrics.NoOpMeter(name, version)
        return self.meter_provider.get_meter(name, version)

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        """Flush pending spans, metrics and log records; True if every provider flushed."""
        ok = True
        if self.tracer_provider is not None:
            ok = self.tracer_provider.force_flush(timeout_millis) and ok
        if self.meter_provider is not None:
            ok = self.meter_provider.force_flush(timeout_millis) and ok
        if self.logger_provider is not None:
            ok = self.logger_provider.force_flush(timeout_millis) and ok
        return ok

    def shutdown(self) -> None:
        """Flush and shut down every provider. Safe to call more than once."""
        if self._shutdown:
            return
        self._shutdown = True

        if self._log_handler is not None:
            logging.getLogger(BRIDGED_LOGGER_NAME).removeHandler(self._log_handler)
            self._log_handler = None
        if self.tracer_provider is not None:
            self.tracer_provider.shutdown()
        if self.meter_provider is not None:
            self.meter_provider.shutdown()
        if self.logger_provider is not None:
            self.logger_provider.shutdown()
        logger.debug("Telemetry shutdown complete")
