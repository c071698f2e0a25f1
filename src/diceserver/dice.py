"""
Roll dice inside OpenTelemetry spans.

A batch runs in a ``rollTheDice`` span with one ``rollDice: <i>`` child per
roll. Every roll adds 1 to the ``diceLib.rolls.counter`` counter, and each
batch ends with a single ``counter_increment`` log record.

Example tree for rolls=2:
  rollTheDice
  ├── rollDice: 0
  └── rollDice: 1
"""

import logging
import math
import random
from collections.abc import Callable

from opentelemetry import metrics, trace
from opentelemetry.trace import StatusCode

TRACER_NAME = "dice-lib"
METER_NAME = "dice-server"
SCOPE_VERSION = "1.0"

ROLLS_COUNTER_NAME = "diceLib.rolls.counter"
REQUEST_DURATION_NAME = "diceServer.request.duration"

logger = logging.getLogger(__name__)


class DiceRoller:
    """Roll uniform integers, emitting a span per roll and per batch."""

    def __init__(
        self,
        tracer: trace.Tracer | None = None,
        meter: metrics.Meter | None = None,
        log: logging.Logger | None = None,
        random_fn: Callable[[], float] = random.random,
    ):
        self.tracer = tracer or trace.get_tracer(TRACER_NAME, SCOPE_VERSION)
        meter = meter or metrics.get_meter(METER_NAME, SCOPE_VERSION)
        self.rolls_counter = meter.create_counter(
            ROLLS_COUNTER_NAME,
            description="Count of individual dice rolls",
            unit="1",
        )
        self.logger = log or logger
        self.random_fn = random_fn

    def roll_once(self, index: int, min_value: int, max_value: int) -> int:
        """Roll a single die in [min_value, max_value]."""
        with self.tracer.start_as_current_span(f"rollDice: {index}") as span:
            result = math.floor(self.random_fn() * (max_value - min_value + 1) + min_value)
            span.set_attribute("dicelib.rolled", str(result))
        return result

    def roll_the_dice(self, rolls: int, min_value: int, max_value: int) -> list[int]:
        """Roll ``rolls`` dice; a zero or negative count yields an empty list."""
        with self.tracer.start_as_current_span(
            "rollTheDice", attributes={"dicelib.rolls": str(rolls)}
        ) as span:
            results: list[int] = []
            for i in range(rolls):
                results.append(self.roll_once(i, min_value, max_value))
                self.rolls_counter.add(1)

            self.logger.info(
                "Incremented counter for dice rolls by: %s",
                rolls,
                extra={"event.name": "counter_increment"},
            )
            span.add_event("hello I am a span event", {"log.severity": "info"})
            # The API keeps status descriptions for ERROR only.
            span.set_attribute("dicelib.status.message", "dice rolled successfully")
            span.set_status(StatusCode.OK)
        return results


_default_roller: DiceRoller | None = None


def get_default_roller() -> DiceRoller:
    """Roller bound to the global OpenTelemetry providers, created on first use."""
    global _default_roller
    if _default_roller is None:
        _default_roller = DiceRoller()
    return _default_roller


def roll_once(index: int, min_value: int, max_value: int) -> int:
    return get_default_roller().roll_once(index, min_value, max_value)


def roll_the_dice(rolls: int, min_value: int = 1, max_value: int = 6) -> list[int]:
    return get_default_roller().roll_the_dice(rolls, min_value, max_value)
