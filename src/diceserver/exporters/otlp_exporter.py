"""
OTLP exporters for traces, metrics, and logs.

Provides factory functions for creating OTLP exporters against a collector or a
hosted backend. Supports both HTTP (protobuf) and gRPC protocols. Over HTTP the
signal path (/v1/traces, /v1/metrics, /v1/logs) is appended to the base endpoint.
"""

from typing import Any


def _signal_url(endpoint: str, signal_path: str) -> str:
    """Append the per-signal path to an OTLP/HTTP base endpoint unless already present."""
    base = endpoint.rstrip("/")
    if base.endswith(signal_path):
        return base
    return f"{base}{signal_path}"


def _grpc_target(endpoint: str) -> tuple[str, bool]:
    """Return (host:port, insecure) for a gRPC exporter from a URL-ish endpoint."""
    insecure = not endpoint.startswith("https://")
    return endpoint.replace("http://", "").replace("https://", "").rstrip("/"), insecure


def _grpc_headers(headers: dict[str, str] | None) -> dict[str, str] | None:
    # gRPC metadata keys must be lowercase.
    if not headers:
        return None
    return {k.lower(): v for k, v in headers.items()}


def create_otlp_trace_exporter(
    endpoint: str = "http://localhost:4318",
    protocol: str = "http",
    headers: dict[str, str] | None = None,
    **kwargs: Any,
):
    """
    Create an OTLP trace exporter.

    Args:
        endpoint: OTLP endpoint URL
        protocol: "http" or "grpc"
        headers: Optional headers to include (e.g. Authorization)
        **kwargs: Additional exporter configuration

    Returns:
        Configured SpanExporter
    """
    if protocol == "grpc":
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        target, insecure = _grpc_target(endpoint)
        return OTLPSpanExporter(
            endpoint=target,
            insecure=insecure,
            headers=_grpc_headers(headers),
            **kwargs,
        )

    from opentelemetry.exporter.otlp.proto.http.trace_exporter import (  # type: ignore[assignment]
        OTLPSpanExporter,
    )

    return OTLPSpanExporter(
        endpoint=_signal_url(endpoint, "/v1/traces"),
        headers=headers,
        **kwargs,
    )


def create_otlp_metric_exporter(
    endpoint: str = "http://localhost:4318",
    protocol: str = "http",
    headers: dict[str, str] | None = None,
    **kwargs: Any,
):
    """
    Create an OTLP metric exporter.

    Args:
        endpoint: OTLP endpoint URL
        protocol: "http" or "grpc"
        headers: Optional headers to include (e.g. Authorization)
        **kwargs: Additional exporter configuration

    Returns:
        Configured MetricExporter
    """
    if protocol == "grpc":
        from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter

        target, insecure = _grpc_target(endpoint)
        return OTLPMetricExporter(
            endpoint=target,
            insecure=insecure,
            headers=_grpc_headers(headers),
            **kwargs,
        )

    from opentelemetry.exporter.otlp.proto.http.metric_exporter import (  # type: ignore[assignment]
        OTLPMetricExporter,
    )

    return OTLPMetricExporter(
        endpoint=_signal_url(endpoint, "/v1/metrics"),
        headers=headers,
        **kwargs,
    )


def create_otlp_log_exporter(
    endpoint: str = "http://localhost:4318",
    protocol: str = "http",
    headers: dict[str, str] | None = None,
    **kwargs: Any,
):
    """
    Create an OTLP log exporter.

    Args:
        endpoint: OTLP endpoint URL
        protocol: "http" or "grpc"
        headers: Optional headers to include (e.g. Authorization)
        **kwargs: Additional exporter configuration

    Returns:
        Configured LogRecordExporter
    """
    if protocol == "grpc":
        from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter

        target, insecure = _grpc_target(endpoint)
        return OTLPLogExporter(
            endpoint=target,
            insecure=insecure,
            headers=_grpc_headers(headers),
            **kwargs,
        )

    from opentelemetry.exporter.otlp.proto.http._log_exporter import (  # type: ignore[assignment]
        OTLPLogExporter,
    )

    return OTLPLogExporter(
        endpoint=_signal_url(endpoint, "/v1/logs"),
        headers=headers,
        **kwargs,
    )
