# utils/step_timer.py
"""
Step timing for the synchronous search routes.
Produces the `performance` block of the two-stage response.
"""

import time
from contextlib import contextmanager
from typing import Dict, List, Optional
from loguru import logger

from ..schemas.search_schemas import PerformanceReport, StepTiming


class StepTimer:
    """Records named step durations for one request"""

    def __init__(self, label: str = "search"):
        self.label = label
        self._started_at = time.perf_counter()
        self._open: Dict[str, float] = {}
        self._steps: List[StepTiming] = []

    def start(self, step: str) -> None:
        self._open[step] = time.perf_counter()
        logger.debug(f"[{self.label}] ▶ {step}")

    def finish(self, step: str, status: str = "completed") -> Optional[float]:
        started = self._open.pop(step, None)
        if started is None:
            logger.warning(f"[{self.label}] finish() for unknown step '{step}'")
            return None
        duration_ms = (time.perf_counter() - started) * 1000
        self._steps.append(StepTiming(step=step, duration_ms=round(duration_ms, 1), status=status))
        logger.info(f"[{self.label}] {'✓' if status == 'completed' else '✗'} {step}: {duration_ms:.0f}ms")
        return duration_ms

    @contextmanager
    def step(self, name: str):
        """Time a block; the step is marked failed if the block raises"""
        self.start(name)
        try:
            yield
        except BaseException:
            self.finish(name, status="failed")
            raise
        self.finish(name)

    def report(self) -> PerformanceReport:
        total_ms = (time.perf_counter() - self._started_at) * 1000
        return PerformanceReport(total_time_ms=round(total_ms, 1), steps=list(self._steps))
