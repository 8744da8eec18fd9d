"""Polling monitor for the closed-archive gate.

Re-evaluates the gate on a fixed interval, logs Open/Closed transitions and
fans each snapshot out to subscriber queues (the SSE countdown stream).
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional, Union

from archive_gate.closed_hours import WallClock, evaluate_gate, utc_now, zone_wall_clock
from archive_gate.models.entities import ClosedHoursConfig, GateSnapshot, GateState

logger = logging.getLogger(__name__)


class GateMonitor:
    """Open/Closed state machine driven by wall-clock polling.

    The state is None until the first tick has evaluated the gate.
    """

    def __init__(
        self,
        config: Union[ClosedHoursConfig, Callable[[], ClosedHoursConfig]],
        clock: Callable[[], datetime] = utc_now,
        interval_s: float = 1.0,
        wall_clock: WallClock = zone_wall_clock,
        queue_size: int = 8,
    ):
        """Initialize the monitor.

        Args:
            config: Closed-hours window to evaluate, or a callable returning it;
                a callable is re-read on every tick.
            clock: Returns the current instant; read fresh on every tick.
            interval_s: Seconds between ticks.
            wall_clock: Zone-aware wall-clock capability passed to the evaluator.
            queue_size: Per-subscriber buffer; the oldest snapshot is dropped when full.
        """
        self._config = config
        self.clock = clock
        self.interval_s = interval_s
        self.wall_clock = wall_clock
        self.queue_size = queue_size
        self._state: Optional[GateState] = None
        self._last: Optional[GateSnapshot] = None
        self._subscribers: list[asyncio.Queue] = []
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def config(self) -> ClosedHoursConfig:
        if callable(self._config):
            return self._config()
        return self._config

    @property
    def state(self) -> Optional[GateState]:
        return self._state

    @property
    def last_snapshot(self) -> Optional[GateSnapshot]:
        return self._last

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def evaluate(self) -> GateSnapshot:
        """Evaluate the gate against a fresh clock reading."""
        return evaluate_gate(self.config, self.clock(), self.wall_clock)

    def subscribe(self) -> asyncio.Queue:
        """Register a queue that receives one snapshot per tick."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.append(queue)
        if self._last is not None:
            queue.put_nowait(self._last)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def tick(self) -> Optional[GateSnapshot]:
        """Run one evaluation. A no-op returning None once the monitor is stopped."""
        if self._stopped:
            return None

        snapshot = self.evaluate()
        if self._state is None:
            logger.info(f"Archive gate resolved: {snapshot.state.value}")
        elif snapshot.state is not self._state:
            logger.info(f"Archive gate transitioned {self._state.value} -> {snapshot.state.value}")
        self._state = snapshot.state
        self._last = snapshot

        for queue in list(self._subscribers):
            if queue.full():
                # Drop the stale snapshot
                queue.get_nowait()
            queue.put_nowait(snapshot)
        return snapshot

    async def _run(self) -> None:
        while not self._stopped:
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Gate evaluation failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval_s)

    async def start(self) -> None:
        """Start polling on the running event loop."""
        if self.running:
            return
        self._stopped = False
        self._task = asyncio.create_task(self._run())
        logger.info(f"Gate monitor started (interval {self.interval_s}s)")

    async def stop(self) -> None:
        """Stop polling and drop all subscribers."""
        self._stopped = True
        self._subscribers.clear()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Gate monitor stopped")
