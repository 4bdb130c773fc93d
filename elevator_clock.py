import asyncio
import logging
from typing import Callable, Optional

from elevator_config import TICK_INTERVAL_MS
from elevator_controller import TickEvent

logger = logging.getLogger("ElevatorSystem")


async def wait(ms: float) -> None:
    """
    Helper function to let real time pass.

    Args:
        ms: Milliseconds to wait
    """
    await asyncio.sleep(ms / 1000.0)


class Ticker:
    """
    Real-time tick producer.

    Posts a ``TickEvent`` roughly every ``interval_ms`` carrying the measured
    time since the previous tick, so a slow frame is caught up instead of
    stretching the simulation. ``time_scale`` multiplies the reported elapsed
    time to run the simulation faster than the wall clock.
    """

    def __init__(self, post: Callable[[TickEvent], None],
                 interval_ms: float = TICK_INTERVAL_MS,
                 time_scale: float = 1.0) -> None:
        """
        Initialize the ticker.

        Args:
            post: Callback receiving each tick, usually ``ElevatorController.post``
            interval_ms: Nominal tick period in milliseconds
            time_scale: Simulated milliseconds per wall-clock millisecond
        """
        if interval_ms <= 0:
            raise ValueError("Tick interval must be positive")
        if time_scale <= 0:
            raise ValueError("Time scale must be positive")
        self.post = post
        self.interval_ms = interval_ms
        self.time_scale = time_scale
        self.ticks = 0
        self._running = False

    async def run(self, duration_ms: Optional[float] = None) -> None:
        """
        Emit ticks until ``stop`` is called or ``duration_ms`` of simulated time passed.
        """
        loop = asyncio.get_running_loop()
        self._running = True
        simulated_ms = 0.0
        last = loop.time()
        logger.info(f"Ticker started: interval={self.interval_ms} ms, time_scale={self.time_scale}")

        while self._running:
            await wait(self.interval_ms)
            now = loop.time()
            elapsed_ms = (now - last) * 1000.0 * self.time_scale
            last = now

            self.post(TickEvent(elapsed_ms=elapsed_ms))
            self.ticks += 1
            simulated_ms += elapsed_ms
            if duration_ms is not None and simulated_ms >= duration_ms:
                break

        self._running = False
        logger.info(f"Ticker stopped after {self.ticks} ticks")

    def stop(self) -> None:
        self._running = False
