"""
Process and system gauges for the dice server.

Registers observable gauges on the ``infra`` meter. Callbacks run once per
metric collection, so every export cycle carries a fresh sample of:
- process CPU utilization and cumulative CPU time
- process memory (RSS, heap/data segment, shared, tracemalloc-traced bytes)
- system memory, 1-minute load average and logical CPU count

Figures come from psutil. Values a platform does not report are skipped rather
than faked.
"""

import os
import time
import tracemalloc
from collections.abc import Callable, Iterable

import psutil
from opentelemetry.metrics import CallbackOptions, Meter, Observation

METER_NAME = "infra"
METER_VERSION = "1.0.0"


class HostMetrics:
    """Sample the current process and host, and expose the samples as gauges."""

    def __init__(
        self,
        meter: Meter,
        process: psutil.Process | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.process = process or psutil.Process(os.getpid())
        self.clock = clock
        self._last_cpu_seconds = self._process_cpu_seconds()
        self._last_wall = self.clock()
        self._register(meter)

    def _process_cpu_seconds(self) -> float:
        times = self.process.cpu_times()
        return times.user + times.system

    @staticmethod
    def cpu_count() -> int:
        return psutil.cpu_count(logical=True) or 1

    def cpu_utilization(self) -> float:
        """Fraction of all logical CPUs used by this process since the previous sample."""
        cpu_seconds = self._process_cpu_seconds()
        now = self.clock()
        elapsed = now - self._last_wall
        busy = cpu_seconds - self._last_cpu_seconds
        self._last_cpu_seconds = cpu_seconds
        self._last_wall = now
        if elapsed <= 0:
            return 0.0
        return max(0.0, busy / (elapsed * self.cpu_count()))

    def _register(self, meter: Meter) -> None:
        gauges: list[tuple[str, str, str, Callable[[CallbackOptions], Iterable[Observation]]]] = [
            # CPU
            ("process.cpu.utilization", "Process CPU fraction (0-1)", "1", self._observe_cpu_utilization),
            ("system.load.1m", "System 1m load average", "1", self._observe_load_1m),
            ("system.cpu.count", "Logical CPU count", "{cpu}", self._observe_cpu_count),
            ("process.cpu.time.user", "Cumulative user CPU time (s)", "s", self._observe_cpu_time_user),
            ("process.cpu.time.system", "Cumulative system CPU time (s)", "s", self._observe_cpu_time_system),
            # process memory
            ("process.memory.rss.bytes", "Resident Set Size in bytes", "By", self._observe_rss),
            ("process.memory.heap.used.bytes", "Process data segment (heap) bytes", "By", self._observe_heap_used),
            (
                "process.memory.heap.utilization",
                "Data segment / virtual memory fraction (0-1)",
                "1",
                self._observe_heap_utilization,
            ),
            (
                "process.memory.external.bytes",
                "Shared memory used (native libraries etc.)",
                "By",
                self._observe_external,
            ),
            (
                "process.memory.array_buffers.bytes",
                "Memory allocated by Python objects (tracemalloc)",
                "By",
                self._observe_traced_memory,
            ),
            # system memory
            ("system.memory.total.bytes", "Total system memory in bytes", "By", self._observe_mem_total),
            ("system.memory.free.bytes", "Free system memory in bytes", "By", self._observe_mem_free),
            (
                "system.memory.used.bytes",
                "Used system memory in bytes (total - free)",
                "By",
                self._observe_mem_used,
            ),
            (
                "system.memory.utilization",
                "Used system memory fraction (0-1)",
                "1",
                self._observe_mem_utilization,
            ),
        ]
        for name, description, unit, callback in gauges:
            meter.create_observable_gauge(
                name, callbacks=[callback], description=description, unit=unit
            )

    def _observe_cpu_utilization(self, options: CallbackOptions) -> Iterable[Observation]:
        return [Observation(self.cpu_utilization())]

    def _observe_load_1m(self, options: CallbackOptions) -> Iterable[Observation]:
        return [Observation(psutil.getloadavg()[0])]

    def _observe_cpu_count(self, options: CallbackOptions) -> Iterable[Observation]:
        return [Observation(self.cpu_count())]

    def _observe_cpu_time_user(self, options: CallbackOptions) -> Iterable[Observation]:
        return [Observation(self.process.cpu_times().user)]

    def _observe_cpu_time_system(self, options: CallbackOptions) -> Iterable[Observation]:
        return [Observation(self.process.cpu_times().system)]

    def _observe_rss(self, options: CallbackOptions) -> Iterable[Observation]:
        return [Observation(self.process.memory_info().rss)]

    def _observe_heap_used(self, options: CallbackOptions) -> Iterable[Observation]:
        data = getattr(self.process.memory_info(), "data", None)
        return [] if data is None else [Observation(data)]

    def _observe_heap_utilization(self, options: CallbackOptions) -> Iterable[Observation]:
        mem = self.process.memory_info()
        data = getattr(mem, "data", None)
        if data is None:
            return []
        return [Observation(data / mem.vms if mem.vms > 0 else 0.0)]

    def _observe_external(self, options: CallbackOptions) -> Iterable[Observation]:
        shared = getattr(self.process.memory_info(), "shared", None)
        return [] if shared is None else [Observation(shared)]

    def _observe_traced_memory(self, options: CallbackOptions) -> Iterable[Observation]:
        if not tracemalloc.is_tracing():
            return []
        current, _peak = tracemalloc.get_traced_memory()
        return [Observation(current)]

    def _observe_mem_total(self, options: CallbackOptions) -> Iterable[Observation]:
        return [Observation(psutil.virtual_memory().total)]

    def _observe_mem_free(self, options: CallbackOptions) -> Iterable[Observation]:
        return [Observation(psutil.virtual_memory().free)]

    def _observe_mem_used(self, options: CallbackOptions) -> Iterable[Observation]:
        mem = psutil.virtual_memory()
        return [Observation(mem.total - mem.free)]

    def _observe_mem_utilization(self, options: CallbackOptions) -> Iterable[Observation]:
        mem = psutil.virtual_memory()
        return [Observation((mem.total - mem.free) / mem.total if mem.total > 0 else 0.0)]
