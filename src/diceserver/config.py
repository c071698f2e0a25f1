"""
Configuration for the dice server.

Runtime settings come from environment variables. A local .env file is loaded
first (variables already present in the environment win), mirroring how the
service is usually run next to an OTLP collector token.

Resource attributes and the service identity are loaded from config/resource.yaml
under the resource root. When running from source, resource/ at project root is
used. When the package is installed, set DICESERVER_ROOT to a directory
containing config/resource.yaml.
"""

import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any

import yaml
from dotenv import find_dotenv, load_dotenv

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
DEFAULT_ENDPOINT = "http://localhost:4318"
DEFAULT_OUTPUT_FILE = "telemetry.jsonl"
DEFAULT_EXPORT_INTERVAL_MS = 100

DEFAULT_SERVICE_NAME = "roll-a-die"
DEFAULT_SERVICE_VERSION = "1.0.0"

EXPORTER_KINDS = ("otlp", "console", "file", "none")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Accepted OTEL_EXPORTER_OTLP_PROTOCOL spellings -> exporter family.
_PROTOCOL_ALIASES = {
    "http": "http",
    "http/protobuf": "http",
    "grpc": "grpc",
}

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})


class ConfigError(ValueError):
    """A configuration value is missing or malformed."""


def get_resources_root() -> Path:
    """Return the root directory for resource configuration.

    Resolution order:
    1. DICESERVER_ROOT env var (must contain config/)
    2. resource/ under directory containing pyproject.toml (when running from source)
    3. diceserver/resources/ next to this package (when installed; set DICESERVER_ROOT if not present)
    """
    env_root = os.environ.get("DICESERVER_ROOT")
    if env_root:
        p = Path(env_root).resolve()
        if p.is_dir():
            return p
    here = Path(__file__).resolve().parent
    for candidate in [here, *here.parents]:
        if (candidate / "pyproject.toml").is_file():
            return candidate / "resource"
    return here / "resources"


def default_resource_path() -> Path:
    return get_resources_root() / "config" / "resource.yaml"


def load_env_file(path: str | Path | None = None) -> bool:
    """Load a .env file into os.environ without overriding existing variables."""
    return load_dotenv(dotenv_path=path or find_dotenv(usecwd=True), override=False)


def load_yaml(path: Path, default: Any = None) -> Any:
    """Load YAML file; return default on missing file or parse error."""
    if default is None:
        default = {}
    if not path.exists():
        return default
    try:
        with path.open(encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except (OSError, yaml.YAMLError):
        return default
    return data if isinstance(data, dict) else default


def load_resource_config(path: Path | None = None) -> tuple[str | None, dict[str, str]]:
    """Load resource settings. Returns (schema_url, attributes).

    Attributes always include service.name and service.version; the file may
    override both through service_name / service_version and add any other
    string-valued attributes under ``attributes``.
    """
    data = load_yaml(path or default_resource_path())

    attrs: dict[str, str] = {
        "service.name": DEFAULT_SERVICE_NAME,
        "service.version": DEFAULT_SERVICE_VERSION,
    }
    raw_attrs = data.get("attributes")
    if isinstance(raw_attrs, dict):
        for key, value in raw_attrs.items():
            if isinstance(key, str) and isinstance(value, str):
                attrs[key] = value

    name = data.get("service_name")
    if isinstance(name, str) and name.strip():
        attrs["service.name"] = name.strip()
    version = data.get("service_version")
    if isinstance(version, (str, int, float)) and str(version).strip():
        attrs["service.version"] = str(version).strip()

    schema_url = data.get("schema_url")
    if not isinstance(schema_url, str) or not schema_url.strip():
        schema_url = None
    else:
        schema_url = schema_url.strip()
    return schema_url, attrs


def resource_attributes(path: Path | None = None) -> dict[str, str]:
    """Resource attributes attached to every span, metric point and log record."""
    _, attrs = load_resource_config(path)
    return attrs


def resource_schema_url(path: Path | None = None) -> str | None:
    schema_url, _ = load_resource_config(path)
    return schema_url


def _parse_bool(name: str, raw: str | None, default: bool) -> bool:
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean (true/false), got {raw!r}")


def _parse_int(name: str, raw: str | None, default: int) -> int:
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _parse_protocol(raw: str | None) -> str:
    if raw is None or not raw.strip():
        return "http"
    protocol = _PROTOCOL_ALIASES.get(raw.strip().lower())
    if protocol is None:
        raise ConfigError(
            f"OTEL_EXPORTER_OTLP_PROTOCOL must be one of {', '.join(_PROTOCOL_ALIASES)}, got {raw!r}"
        )
    return protocol


@dataclass(frozen=True)
class ServerSettings:
    """Resolved runtime settings for the HTTP server and its telemetry pipeline."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    endpoint: str = DEFAULT_ENDPOINT
    token: str | None = None
    protocol: str = "http"
    exporter: str = "otlp"
    output_file: str = DEFAULT_OUTPUT_FILE
    export_interval_ms: int = DEFAULT_EXPORT_INTERVAL_MS
    host_metrics: bool = True
    traces_enabled: bool = True
    metrics_enabled: bool = True
    logs_enabled: bool = True
    log_level: str = "INFO"
    resource_path: Path | None = None

    def __post_init__(self) -> None:
        if not 1 <= self.port <= 65535:
            raise ConfigError(f"PORT must be between 1 and 65535, got {self.port}")
        if self.export_interval_ms <= 0:
            raise ConfigError(
                "DICESERVER_METRIC_EXPORT_INTERVAL_MS must be positive, "
                f"got {self.export_interval_ms}"
            )
        if self.exporter not in EXPORTER_KINDS:
            raise ConfigError(
                f"DICESERVER_EXPORTER must be one of {', '.join(EXPORTER_KINDS)}, got {self.exporter!r}"
            )
        if self.protocol not in ("http", "grpc"):
            raise ConfigError(f"protocol must be 'http' or 'grpc', got {self.protocol!r}")
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(
                f"DICESERVER_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {self.log_level!r}"
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ServerSettings":
        """Build settings from environment variables (os.environ by default)."""
        env = os.environ if environ is None else environ

        root = env.get("DICESERVER_ROOT")
        resource_path = Path(root) / "config" / "resource.yaml" if root else None

        return cls(
            host=(env.get("HOST") or DEFAULT_HOST).strip(),
            port=_parse_int("PORT", env.get("PORT"), DEFAULT_PORT),
            endpoint=(env.get("OTEL_EXPORTER_OTLP_ENDPOINT") or DEFAULT_ENDPOINT).strip().rstrip("/"),
            token=(env.get("OTEL_EXPORTER_OTLP_TOKEN") or "").strip() or None,
            protocol=_parse_protocol(env.get("OTEL_EXPORTER_OTLP_PROTOCOL")),
            exporter=(env.get("DICESERVER_EXPORTER") or "otlp").strip().lower(),
            output_file=(env.get("DICESERVER_OUTPUT_FILE") or DEFAULT_OUTPUT_FILE).strip(),
            export_interval_ms=_parse_int(
                "DICESERVER_METRIC_EXPORT_INTERVAL_MS",
                env.get("DICESERVER_METRIC_EXPORT_INTERVAL_MS"),
                DEFAULT_EXPORT_INTERVAL_MS,
            ),
            host_metrics=_parse_bool(
                "DICESERVER_HOST_METRICS", env.get("DICESERVER_HOST_METRICS"), True
            ),
            traces_enabled=not _parse_bool(
                "DICESERVER_NO_TRACES", env.get("DICESERVER_NO_TRACES"), False
            ),
            metrics_enabled=not _parse_bool(
                "DICESERVER_NO_METRICS", env.get("DICESERVER_NO_METRICS"), False
            ),
            logs_enabled=not _parse_bool("DICESERVER_NO_LOGS", env.get("DICESERVER_NO_LOGS"), False),
            log_level=(env.get("DICESERVER_LOG_LEVEL") or "INFO").strip().upper(),
            resource_path=resource_path,
        )

    def with_overrides(self, **changes: Any) -> "ServerSettings":
        """Return a copy with the given fields replaced; None values are ignored."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def otlp_headers(self) -> dict[str, str] | None:
        """Headers sent with every OTLP export (the token goes out verbatim)."""
        if not self.token:
            return None
        return {"Authorization": self.token}

    def describe(self) -> dict[str, Any]:
        """Settings as a plain dict, with the token masked."""
        data = asdict(self)
        if data["token"]:
            data["token"] = "****"
        data["resource_path"] = str(self.resource_path or default_resource_path())
        return data
