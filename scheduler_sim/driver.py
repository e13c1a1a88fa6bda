from __future__ import annotations

import logging
from threading import Event, Thread

logger = logging.getLogger(__name__)


class FrameLoop(Thread):
    """
    Background frame ticker for a Simulation.

    Each frame calls ``simulation.tick``, which measures the real elapsed
    time since the previous frame, so an irregular frame rate changes how
    fast the run looks but never how time is accounted.
    """

    def __init__(self, simulation, interval: float):
        super().__init__(name="scheduler-frame-loop", daemon=True)
        self.simulation = simulation
        self.interval = interval
        self._stop_event = Event()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        self._stop_event.set()

    def run(self) -> None:
        logger.debug("Frame loop started (interval %.4fs)", self.interval)
        while not self._stop_event.is_set():
            try:
                self.simulation.tick(source=self)
            except Exception:
                logger.exception("Frame loop stopped after a failed frame")
                self.simulation.loop_failed(self)
                return
            self._stop_event.wait(self.interval)
        logger.debug("Frame loop stopped")
