"""
Command-line interface for the dice server.

Provides commands for:
- Serving GET /rolldice with the full telemetry pipeline
- Rolling dice locally (handy for checking exporter wiring)
- Printing the resolved configuration
"""

import argparse
import json
import sys

from .config import EXPORTER_KINDS, ConfigError, ServerSettings, load_env_file, load_resource_config
from .dice import METER_NAME, SCOPE_VERSION, TRACER_NAME, DiceRoller


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="diceserver",
        description="Dice rolling HTTP service instrumented with OpenTelemetry",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve on the default port, exporting OTLP to a local collector
  diceserver serve

  # Serve on another port, printing telemetry to stdout
  diceserver serve --port 9090 --exporter console

  # Roll five dice locally and write spans/metrics/logs to files
  diceserver roll --rolls 5 --exporter file --output-file out/dice.jsonl

  # Show resolved settings (token masked)
  diceserver config
        """,
    )

    parser.add_argument(
        "--env-file",
        type=str,
        default=None,
        help="Path to a .env file (default: .env in the working directory)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_parser.add_argument("--host", type=str, default=None, help="Bind address (default: HOST or 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, default=None, help="Listen port (default: PORT or 8080)")
    _add_exporter_arguments(serve_parser)
    serve_parser.add_argument(
        "--no-host-metrics",
        action="store_true",
        help="Do not register process/system gauges",
    )

    roll_parser = subparsers.add_parser("roll", help="Roll dice locally and print the results")
    roll_parser.add_argument("--rolls", type=int, required=True, help="Number of dice to roll")
    roll_parser.add_argument("--min", dest="min_value", type=int, default=1, help="Lowest face (default: 1)")
    roll_parser.add_argument("--max", dest="max_value", type=int, default=6, help="Highest face (default: 6)")
    _add_exporter_arguments(roll_parser)

    subparsers.add_parser("config", help="Print resolved settings and resource attributes")

    return parser


def _add_exporter_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--endpoint",
        type=str,
        default=None,
        help="OTLP endpoint (default: OTEL_EXPORTER_OTLP_ENDPOINT or http://localhost:4318)",
    )
    parser.add_argument(
        "--exporter",
        type=str,
        choices=EXPORTER_KINDS,
        default=None,
        help="Exporter family (default: DICESERVER_EXPORTER or otlp)",
    )
    parser.add_argument(
        "--output-file",
        type=str,
        default=None,
        help="Base path for the file exporter (metrics/logs go to *_metrics / *_logs)",
    )
    parser.add_argument(
        "--no-metrics",
        action="store_true",
        help="Disable metric export",
    )
    parser.add_argument(
        "--no-logs",
        action="store_true",
        help="Disable log export",
    )


def settings_from_args(args: argparse.Namespace) -> ServerSettings:
    """Environment settings with command-line flags layered on top."""
    settings = ServerSettings.from_env()
    return settings.with_overrides(
        host=getattr(args, "host", None),
        port=getattr(args, "port", None),
        endpoint=getattr(args, "endpoint", None),
        exporter=getattr(args, "exporter", None),
        output_file=getattr(args, "output_file", None),
        metrics_enabled=False if getattr(args, "no_metrics", False) else None,
        logs_enabled=False if getattr(args, "no_logs", False) else None,
        host_metrics=False if getattr(args, "no_host_metrics", False) else None,
    )


def cmd_serve(args: argparse.Namespace):
    """Run the HTTP server until interrupted."""
    import uvicorn

    from .app import create_app
    from .logging_config import configure_logging
    from .telemetry import Telemetry

    settings = settings_from_args(args)
    configure_logging(settings.log_level)

    print("Starting dice server...")
    print(f"   Listen: {settings.host}:{settings.port}")
    print(f"   Exporter: {settings.exporter}")
    if settings.exporter == "otlp":
        print(f"   Endpoint: {settings.endpoint} ({settings.protocol})")
    elif settings.exporter == "file":
        print(f"   Output: {settings.output_file}")
    print()

    telemetry = Telemetry.from_settings(settings)
    app = create_app(settings, telemetry=telemetry)
    try:
        uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
    finally:
        telemetry.shutdown()


def cmd_roll(args: argparse.Namespace):
    """Roll dice locally and print the JSON result."""
    from .logging_config import configure_logging
    from .telemetry import Telemetry

    settings = settings_from_args(args)
    if args.exporter is None:
        settings = settings.with_overrides(exporter="none")
    configure_logging(settings.log_level)

    telemetry = Telemetry.from_settings(settings, install_globals=False, host_metrics=False)
    try:
        roller = DiceRoller(
            tracer=telemetry.get_tracer(TRACER_NAME, SCOPE_VERSION),
            meter=telemetry.get_meter(METER_NAME, SCOPE_VERSION),
        )
        results = roller.roll_the_dice(args.rolls, args.min_value, args.max_value)
    finally:
        telemetry.shutdown()

    print(json.dumps(results))


def cmd_config(args: argparse.Namespace):
    """Print resolved settings and the resource that will be attached to telemetry."""
    settings = ServerSettings.from_env()
    schema_url, attributes = load_resource_config(settings.resource_path)

    print("Settings:")
    for key, value in settings.describe().items():
        print(f"   {key}: {value}")
    print()
    print("Resource:")
    if schema_url:
        print(f"   schema_url: {schema_url}")
    for key in sorted(attributes):
        print(f"   {key}: {attributes[key]}")


def main(argv: list[str] | None = None):
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    load_env_file(args.env_file)

    commands = {
        "serve": cmd_serve,
        "roll": cmd_roll,
        "config": cmd_config,
    }
    try:
        commands[args.command](args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted")
        sys.exit(0)


if __name__ == "__main__":
    main()
