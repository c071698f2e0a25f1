"""Tests for environment settings and resource configuration."""

from pathlib import Path

import pytest

from diceserver.config import (
    DEFAULT_ENDPOINT,
    DEFAULT_EXPORT_INTERVAL_MS,
    DEFAULT_PORT,
    ConfigError,
    ServerSettings,
    default_resource_path,
    load_env_file,
    load_resource_config,
)

REPO_RESOURCE_ROOT = Path(__file__).resolve().parents[1] / "resource"


def test_defaults_from_empty_environment() -> None:
    """No variables set gives the documented defaults."""
    settings = ServerSettings.from_env({})
    assert settings.port == DEFAULT_PORT
    assert settings.host == "0.0.0.0"
    assert settings.endpoint == DEFAULT_ENDPOINT
    assert settings.token is None
    assert settings.protocol == "http"
    assert settings.exporter == "otlp"
    assert settings.export_interval_ms == DEFAULT_EXPORT_INTERVAL_MS
    assert settings.host_metrics is True
    assert settings.traces_enabled and settings.metrics_enabled and settings.logs_enabled
    assert settings.otlp_headers() is None


def test_values_from_environment() -> None:
    settings = ServerSettings.from_env(
        {
            "PORT": "9090",
            "HOST": "127.0.0.1",
            "OTEL_EXPORTER_OTLP_ENDPOINT": "https://otlp.example.com/",
            "OTEL_EXPORTER_OTLP_TOKEN": "Bearer abc123",
            "OTEL_EXPORTER_OTLP_PROTOCOL": "http/protobuf",
            "DICESERVER_EXPORTER": "FILE",
            "DICESERVER_METRIC_EXPORT_INTERVAL_MS": "5000",
            "DICESERVER_HOST_METRICS": "false",
            "DICESERVER_NO_LOGS": "1",
            "DICESERVER_LOG_LEVEL": "debug",
        }
    )
    assert settings.port == 9090
    assert settings.host == "127.0.0.1"
    assert settings.endpoint == "https://otlp.example.com"
    assert settings.protocol == "http"
    assert settings.exporter == "file"
    assert settings.export_interval_ms == 5000
    assert settings.host_metrics is False
    assert settings.logs_enabled is False
    assert settings.metrics_enabled is True
    assert settings.log_level == "DEBUG"
    assert settings.otlp_headers() == {"Authorization": "Bearer abc123"}


@pytest.mark.parametrize(
    "env",
    [
        {"PORT": "http"},
        {"PORT": "0"},
        {"PORT": "70000"},
        {"DICESERVER_METRIC_EXPORT_INTERVAL_MS": "0"},
        {"DICESERVER_METRIC_EXPORT_INTERVAL_MS": "fast"},
        {"DICESERVER_EXPORTER": "zipkin"},
        {"OTEL_EXPORTER_OTLP_PROTOCOL": "http/json"},
        {"DICESERVER_NO_METRICS": "maybe"},
        {"DICESERVER_LOG_LEVEL": "LOUD"},
    ],
)
def test_invalid_values_raise_config_error(env: dict[str, str]) -> None:
    """Malformed variables are rejected with the variable named."""
    with pytest.raises(ConfigError) as exc_info:
        ServerSettings.from_env(env)
    assert list(env)[0] in str(exc_info.value)


def test_config_error_is_value_error() -> None:
    assert issubclass(ConfigError, ValueError)


def test_with_overrides_ignores_none() -> None:
    settings = ServerSettings().with_overrides(port=9000, exporter=None, host_metrics=False)
    assert settings.port == 9000
    assert settings.exporter == "otlp"
    assert settings.host_metrics is False


def test_describe_masks_token() -> None:
    described = ServerSettings(token="secret-token").describe()
    assert described["token"] == "****"
    assert "secret-token" not in str(described)


def test_from_env_reads_os_environ(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORT", "8181")
    monkeypatch.delenv("DICESERVER_EXPORTER", raising=False)
    assert ServerSettings.from_env().port == 8181


def test_env_file_does_not_override_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """.env fills gaps; variables already set win."""
    env_file = tmp_path / ".env"
    env_file.write_text("PORT=7070\nOTEL_EXPORTER_OTLP_TOKEN=from-file\n", encoding="utf-8")
    monkeypatch.setenv("PORT", "6060")
    monkeypatch.delenv("OTEL_EXPORTER_OTLP_TOKEN", raising=False)

    assert load_env_file(env_file) is True
    settings = ServerSettings.from_env()
    assert settings.port == 6060
    assert settings.token == "from-file"


def test_bundled_resource_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """The project resource file names the service."""
    monkeypatch.setenv("DICESERVER_ROOT", str(REPO_RESOURCE_ROOT))
    assert default_resource_path().is_file()
    schema_url, attrs = load_resource_config()
    assert attrs["service.name"] == "roll-a-die"
    assert attrs["service.version"] == "1.0.0"
    assert schema_url is not None and schema_url.startswith("https://opentelemetry.io/schemas/")


def test_resource_config_overrides(tmp_path: Path) -> None:
    path = tmp_path / "resource.yaml"
    path.write_text(
        "service_name: dice-test\n"
        "service_version: 2\n"
        "attributes:\n"
        "  team: platform\n"
        "  replicas: 3\n",
        encoding="utf-8",
    )
    schema_url, attrs = load_resource_config(path)
    assert schema_url is None
    assert attrs["service.name"] == "dice-test"
    assert attrs["service.version"] == "2"
    assert attrs["team"] == "platform"
    assert "replicas" not in attrs


@pytest.mark.parametrize("content", [None, "::: not yaml [", "- a list\n"])
def test_resource_config_falls_back_to_defaults(tmp_path: Path, content: str | None) -> None:
    """Missing, unparsable or non-mapping files use the built-in identity."""
    path = tmp_path / "resource.yaml"
    if content is not None:
        path.write_text(content, encoding="utf-8")
    schema_url, attrs = load_resource_config(path)
    assert schema_url is None
    assert attrs == {"service.name": "roll-a-die", "service.version": "1.0.0"}
