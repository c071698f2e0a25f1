"""
FastAPI application serving ``GET /rolldice``.

The handler parses ``rolls`` the permissive way the service always has:
leading whitespace, an optional sign, then decimal digits or a ``0x`` hex
number; anything after the digits is ignored. Missing or non-numeric values
get a fixed plain-text 400. Negative and large counts are passed through
unchanged. A digit run too long to hold as an integer counts as not a number.
"""

import logging
import re
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from opentelemetry import metrics
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from . import __version__
from .config import ServerSettings
from .dice import (
    METER_NAME,
    REQUEST_DURATION_NAME,
    SCOPE_VERSION,
    TRACER_NAME,
    DiceRoller,
    get_default_roller,
)
from .telemetry import Telemetry

logger = logging.getLogger(__name__)

ROLLS_ERROR_MESSAGE = "Request parameter 'rolls' is missing or not a number."
DIE_MIN = 1
DIE_MAX = 6

# Significant digits accepted in rolls; longer runs are rejected before int().
MAX_ROLLS_DIGITS = 4000

_LEADING_INT = re.compile(r"\s*([+-]?)(?:0[xX]([0-9a-fA-F]*)|([0-9]+))")


def parse_rolls(raw: str | None) -> int | None:
    """Parse the leading integer of ``raw``; None when absent or not a number."""
    if raw is None:
        return None
    match = _LEADING_INT.match(raw)
    if match is None:
        return None
    sign, hex_digits, decimal_digits = match.groups()
    if hex_digits is not None:
        digits, base = hex_digits, 16
    else:
        digits, base = decimal_digits, 10
    if not digits:
        return None
    digits = digits.lstrip("0") or "0"
    if len(digits) > MAX_ROLLS_DIGITS:
        return None
    return int(sign + digits, base)


def create_app(
    settings: ServerSettings | None = None,
    telemetry: Telemetry | None = None,
    roller: DiceRoller | None = None,
) -> FastAPI:
    """
    Build the dice server application.

    Args:
        settings: Server settings (port is used for the startup message)
        telemetry: Pipeline to instrument with; it is shut down with the app.
            Without one, the global OpenTelemetry providers are used.
        roller: Dice roller override (defaults to one bound to ``telemetry``)

    Returns:
        Configured FastAPI app
    """
    settings = settings or ServerSettings()

    if telemetry is not None:
        meter = telemetry.get_meter(METER_NAME, SCOPE_VERSION)
        if roller is None:
            roller = DiceRoller(
                tracer=telemetry.get_tracer(TRACER_NAME, SCOPE_VERSION),
                meter=meter,
            )
    else:
        meter = metrics.get_meter(METER_NAME, SCOPE_VERSION)
        if roller is None:
            roller = get_default_roller()

    request_duration = meter.create_histogram(
        REQUEST_DURATION_NAME,
        description="Duration of dice roll requests",
        unit="ms",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Listening for requests on http://localhost:%s",
            settings.port,
            extra={"event.name": "server_start"},
        )
        yield
        if telemetry is not None:
            telemetry.shutdown()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="roll-a-die",
        description="Dice rolling service instrumented with OpenTelemetry",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/rolldice")
    def roll_dice(rolls: str | None = None) -> Response:
        """Roll ``rolls`` six-sided dice and return the results as a JSON array."""
        started = time.perf_counter()
        count = parse_rolls(rolls)
        if count is None:
            response: Response = PlainTextResponse(ROLLS_ERROR_MESSAGE, status_code=400)
        else:
            response = JSONResponse(roller.roll_the_dice(count, DIE_MIN, DIE_MAX))
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        request_duration.record(elapsed_ms, {"http.response.status_code": response.status_code})
        return response

    if telemetry is not None and telemetry.tracer_provider is not None:
        FastAPIInstrumentor.instrument_app(
            app,
            tracer_provider=telemetry.tracer_provider,
            meter_provider=telemetry.meter_provider,
        )

    return app
