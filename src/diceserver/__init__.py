"""
roll-a-die - a dice rolling HTTP service instrumented with OpenTelemetry.

This package serves ``GET /rolldice`` and exports traces, metrics (including
process and system gauges) and logs through a configurable OTLP pipeline.
"""

__version__ = "1.0.0"
