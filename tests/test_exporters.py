"""Tests for OTLP, console and file exporters and the exporter factory."""

import json
from pathlib import Path
from typing import Any

import pytest
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk._logs.export import ConsoleLogRecordExporter
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter
from opentelemetry.sdk.trace.export import ConsoleSpanExporter

from diceserver.config import ServerSettings
from diceserver.dice import METER_NAME, TRACER_NAME, DiceRoller
from diceserver.exporters import (
    FileLogExporter,
    FileMetricExporter,
    FileSpanExporter,
    create_exporters,
    create_otlp_log_exporter,
    create_otlp_metric_exporter,
    create_otlp_trace_exporter,
    sibling_path,
)
from diceserver.telemetry import Telemetry, build_resource


class _RecordingExporter:
    """Stand-in for an OTLP exporter class; keeps constructor kwargs."""

    def __init__(self, **kwargs: Any):
        self.kwargs = kwargs


HTTP_EXPORTER_CLASSES = [
    "opentelemetry.exporter.otlp.proto.http.trace_exporter.OTLPSpanExporter",
    "opentelemetry.exporter.otlp.proto.http.metric_exporter.OTLPMetricExporter",
    "opentelemetry.exporter.otlp.proto.http._log_exporter.OTLPLogExporter",
]


@pytest.fixture
def recording_http_exporters(monkeypatch: pytest.MonkeyPatch) -> None:
    """Replace the OTLP/HTTP exporter classes so constructor arguments can be checked."""
    for target in HTTP_EXPORTER_CLASSES:
        monkeypatch.setattr(target, _RecordingExporter)


def _read_jsonl(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line]


def test_http_factories_return_sdk_exporters() -> None:
    assert isinstance(create_otlp_trace_exporter("http://localhost:4318"), OTLPSpanExporter)
    assert isinstance(create_otlp_metric_exporter("http://localhost:4318"), OTLPMetricExporter)
    assert isinstance(create_otlp_log_exporter("http://localhost:4318"), OTLPLogExporter)


@pytest.mark.usefixtures("recording_http_exporters")
def test_http_exporters_append_signal_paths() -> None:
    """Each signal posts to its own /v1 path under the base endpoint, with the token header."""
    headers = {"Authorization": "Bearer t0ken"}
    spans = create_otlp_trace_exporter("https://otlp.example.com/", "http", headers)
    metrics = create_otlp_metric_exporter("https://otlp.example.com", "http", headers)
    logs = create_otlp_log_exporter("https://otlp.example.com", "http", headers)

    assert spans.kwargs == {
        "endpoint": "https://otlp.example.com/v1/traces",
        "headers": {"Authorization": "Bearer t0ken"},
    }
    assert metrics.kwargs["endpoint"] == "https://otlp.example.com/v1/metrics"
    assert logs.kwargs["endpoint"] == "https://otlp.example.com/v1/logs"
    assert logs.kwargs["headers"] == {"Authorization": "Bearer t0ken"}


@pytest.mark.usefixtures("recording_http_exporters")
def test_http_exporter_keeps_explicit_signal_path() -> None:
    spans = create_otlp_trace_exporter("http://collector:4318/v1/traces")
    assert spans.kwargs["endpoint"] == "http://collector:4318/v1/traces"
    assert spans.kwargs["headers"] is None


def test_grpc_exporter_target_and_headers(monkeypatch: pytest.MonkeyPatch) -> None:
    """gRPC gets host:port, TLS only for https, and lowercase metadata keys."""
    monkeypatch.setattr(
        "opentelemetry.exporter.otlp.proto.grpc.trace_exporter.OTLPSpanExporter",
        _RecordingExporter,
    )
    exporter = create_otlp_trace_exporter(
        "http://collector:4317", "grpc", {"Authorization": "token"}
    )
    assert exporter.kwargs == {
        "endpoint": "collector:4317",
        "insecure": True,
        "headers": {"authorization": "token"},
    }


def test_grpc_exporter_https_is_secure(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "opentelemetry.exporter.otlp.proto.grpc.metric_exporter.OTLPMetricExporter",
        _RecordingExporter,
    )
    exporter = create_otlp_metric_exporter("https://otlp.example.com:443", "grpc")
    assert exporter.kwargs["endpoint"] == "otlp.example.com:443"
    assert exporter.kwargs["insecure"] is False
    assert exporter.kwargs["headers"] is None


def test_sibling_path() -> None:
    assert sibling_path("out/traces.jsonl", "_metrics") == Path("out/traces_metrics.jsonl")
    assert sibling_path("out/traces", "_logs") == Path("out/traces_logs.jsonl")


def test_factory_none_disables_everything() -> None:
    exporters = create_exporters(ServerSettings(exporter="none"))
    assert exporters.spans is None
    assert exporters.metrics is None
    assert exporters.logs is None


def test_factory_console() -> None:
    """console prints every enabled signal to stdout."""
    exporters = create_exporters(ServerSettings(exporter="console"))
    assert isinstance(exporters.spans, ConsoleSpanExporter)
    assert isinstance(exporters.metrics, ConsoleMetricExporter)
    assert isinstance(exporters.logs, ConsoleLogRecordExporter)

    without_logs = create_exporters(ServerSettings(exporter="console", logs_enabled=False))
    assert isinstance(without_logs.spans, ConsoleSpanExporter)
    assert without_logs.logs is None


@pytest.mark.usefixtures("recording_http_exporters")
def test_factory_otlp_uses_token_header() -> None:
    settings = ServerSettings(endpoint="https://otlp.example.com", token="abc", metrics_enabled=False)
    exporters = create_exporters(settings)
    assert exporters.spans.kwargs["headers"] == {"Authorization": "abc"}
    assert exporters.spans.kwargs["endpoint"] == "https://otlp.example.com/v1/traces"
    assert exporters.metrics is None
    assert exporters.logs.kwargs["headers"] == {"Authorization": "abc"}


def test_factory_file_writes_three_files(tmp_path: Path) -> None:
    base = tmp_path / "dice.jsonl"
    exporters = create_exporters(ServerSettings(exporter="file", output_file=str(base)))
    assert isinstance(exporters.spans, FileSpanExporter)
    assert isinstance(exporters.metrics, FileMetricExporter)
    assert isinstance(exporters.logs, FileLogExporter)
    assert exporters.metrics.output_path == tmp_path / "dice_metrics.jsonl"
    assert exporters.logs.output_path == tmp_path / "dice_logs.jsonl"


def test_file_exporters_capture_a_roll(tmp_path: Path) -> None:
    """Spans, metrics and logs from one batch land in their JSON-lines files."""
    base = tmp_path / "dice.jsonl"
    pipeline = Telemetry(
        resource=build_resource(),
        span_exporter=FileSpanExporter(base),
        metric_exporter=FileMetricExporter(sibling_path(base, "_metrics")),
        log_exporter=FileLogExporter(sibling_path(base, "_logs")),
        export_interval_ms=60000,
        host_metrics=False,
        install_globals=False,
    )
    roller = DiceRoller(tracer=pipeline.get_tracer(TRACER_NAME), meter=pipeline.get_meter(METER_NAME))
    roller.roll_the_dice(2, 1, 6)
    pipeline.shutdown()

    spans = _read_jsonl(base)
    assert sorted(s["name"] for s in spans) == ["rollDice: 0", "rollDice: 1", "rollTheDice"]
    batch = next(s for s in spans if s["name"] == "rollTheDice")
    assert batch["status"]["status_code"] == "OK"
    assert batch["events"][0]["name"] == "hello I am a span event"
    assert batch["resource"]["service.name"] == "roll-a-die"

    metrics = _read_jsonl(sibling_path(base, "_metrics"))
    counter = [m for m in metrics if m["name"] == "diceLib.rolls.counter"]
    assert counter and counter[-1]["data_points"][0]["value"] == 2
    assert counter[-1]["scope"] == METER_NAME

    logs = _read_jsonl(sibling_path(base, "_logs"))
    assert any(r["body"] == "Incremented counter for dice rolls by: 2" for r in logs)


def test_file_exporter_reports_failure(tmp_path: Path) -> None:
    """Write errors become FAILURE results, not exceptions."""
    from opentelemetry.sdk.trace.export import SpanExportResult

    exporter = FileSpanExporter(tmp_path / "spans.jsonl")
    exporter._writer.output_path = tmp_path / "missing" / "spans.jsonl"

    assert exporter.export([]) == SpanExportResult.FAILURE
