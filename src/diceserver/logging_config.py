"""
Stdlib logging setup for the dice server.

Console output goes to stderr. When log export is enabled the telemetry
pipeline adds its own handler to the ``diceserver`` logger, so the same
records are also shipped as OpenTelemetry log records.
"""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a stderr handler on the root logger and set the package level."""
    logging.basicConfig(level=logging.WARNING, format=LOG_FORMAT)
    logging.getLogger("diceserver").setLevel(level)
    # uvicorn's own loggers stay at INFO so startup and bind errors are visible.
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
