"""OpenTelemetry pipeline setup and host gauges for the dice server."""

from .host_metrics import HostMetrics
from .pipeline import Telemetry, build_resource

__all__ = [
    "Telemetry",
    "build_resource",
    "HostMetrics",
]
