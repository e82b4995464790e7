"""
Cycle scheduling: a fixed batch of concurrent fetch units per cycle, bounded
by the cadence.

The coordinator waits for whichever comes first, all units done or the cadence
elapsed. Units still running after a timeout are left alone. They release the
countdown of their own abandoned cycle and may log after the next begin marker.
"""

import asyncio
import time
from enum import Enum
from typing import Optional, Set

import structlog

from ratepoll.config import CycleSettings
from ratepoll.worker import FetchUnit

logger = structlog.get_logger(__name__)


class Countdown:
    """Counter released once per unit, awaitable until it reaches zero."""

    def __init__(self, count: int):
        if count < 0:
            raise ValueError("Countdown cannot start below zero")
        self._remaining = count
        self._zero = asyncio.Event()
        if count == 0:
            self._zero.set()

    @property
    def remaining(self) -> int:
        return self._remaining

    def done(self):
        if self._remaining == 0:
            raise ValueError("Countdown released more times than it was started with")
        self._remaining -= 1
        if self._remaining == 0:
            self._zero.set()

    async def wait(self):
        await self._zero.wait()


class CycleState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    RESOLVING = "resolving"
    SLEEPING = "sleeping"


class Cycle:
    def __init__(self, number: int, batch_size: int, cadence: float):
        """One round of fetches. Built fresh by the driver for every iteration."""
        self.number = number
        self.batch_size = batch_size
        self.cadence = cadence
        self.countdown = Countdown(batch_size)
        self.completed = asyncio.Event()
        self.started_at: Optional[float] = None


class CycleResult:
    def __init__(self, number: int, timed_out: bool, elapsed: float, slept: float = 0.0):
        self.number = number
        self.timed_out = timed_out
        self.elapsed = elapsed
        self.slept = slept

    @property
    def outcome(self) -> str:
        return "timeout" if self.timed_out else "completed"


class CycleCoordinator:
    """Runs the units of one cycle and resolves the cycle boundary."""

    def __init__(self, settings: CycleSettings, fetcher, diagnostics, clock=time.monotonic):
        self.settings = settings
        self.fetcher = fetcher
        self.diagnostics = diagnostics
        self.clock = clock
        self.state = CycleState.IDLE
        # shared by every unit of every cycle, and by the cycle markers
        self.print_lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _monitor(self, cycle: Cycle):
        await cycle.countdown.wait()
        cycle.completed.set()

    async def run_cycle(self, cycle: Cycle) -> CycleResult:
        self.state = CycleState.RUNNING
        cycle.started_at = self.clock()

        async with self.print_lock:
            self.diagnostics.begin_marker(cycle.number, cycle.batch_size)

        for index in range(cycle.batch_size):
            unit = FetchUnit(
                index,
                self.fetcher,
                self.diagnostics,
                self.print_lock,
                cycle.countdown,
                rate_floor=self.settings.rate_floor,
                rate_ceiling=self.settings.rate_ceiling,
            )
            self._spawn(unit.run())

        self._spawn(self._monitor(cycle))
        self.state = CycleState.RESOLVING

        try:
            await asyncio.wait_for(cycle.completed.wait(), timeout=cycle.cadence)
        except asyncio.TimeoutError:
            elapsed = self.clock() - cycle.started_at
            self.state = CycleState.SLEEPING
            async with self.print_lock:
                self.diagnostics.timeout_notice(cycle.number, cycle.cadence, cycle.countdown.remaining)
            result = CycleResult(cycle.number, timed_out=True, elapsed=elapsed)
        else:
            elapsed = self.clock() - cycle.started_at
            residual = max(0.0, cycle.cadence - elapsed)
            self.state = CycleState.SLEEPING
            await asyncio.sleep(residual)
            result = CycleResult(cycle.number, timed_out=False, elapsed=elapsed, slept=residual)

        async with self.print_lock:
            self.diagnostics.end_marker(cycle.number, result.outcome)

        self.state = CycleState.IDLE
        logger.debug(
            "cycle_resolved",
            cycle=cycle.number,
            outcome=result.outcome,
            elapsed=round(result.elapsed, 3),
            pending_tasks=self.pending_tasks,
        )
        return result


class CycleDriver:
    """Runs cycles back to back on the configured cadence."""

    def __init__(self, coordinator: CycleCoordinator, settings: CycleSettings):
        self.coordinator = coordinator
        self.settings = settings
        self.cycles_run = 0

    def new_cycle(self) -> Cycle:
        return Cycle(self.cycles_run, self.settings.batch_size, self.settings.cadence)

    async def run_forever(self, max_cycles: Optional[int] = None):
        """Loop without end. max_cycles bounds the loop for one-shot runs and tests."""
        while max_cycles is None or self.cycles_run < max_cycles:
            await self.coordinator.run_cycle(self.new_cycle())
            self.cycles_run += 1
