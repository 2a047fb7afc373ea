"""Repeating timer task driving the polling loop."""
import threading
from collections.abc import Callable
from typing import Any
from typing import Protocol

import structlog

logger = structlog.get_logger('scheduler')


class Clock(Protocol):
    def wait(self, seconds: float, stop_event: threading.Event) -> bool:
        """Pause for `seconds`. Returns True if the stop signal fired meanwhile."""
        ...


class SystemClock:
    """Real timer: waits on the stop event so a stop request wakes it immediately."""

    def wait(self, seconds: float, stop_event: threading.Event) -> bool:
        return stop_event.wait(timeout=seconds)


class PollingLoop:
    """
    Runs `body` every `interval` seconds until stopped.

    The body is never interrupted; the stop signal is honored before each
    iteration and during the pause between iterations. A body that raises
    is logged and counted as a failed iteration; the loop carries on.
    """

    def __init__(
        self,
        body: Callable[[], Any],
        interval: float,
        clock: Clock | None = None,
        stop_event: threading.Event | None = None,
    ):
        self.body = body
        self.interval = interval
        self.clock = clock or SystemClock()
        self.stop_event = stop_event or threading.Event()
        self.iterations = 0
        self.failures = 0

    def stop(self) -> None:
        self.stop_event.set()

    def run(self, max_iterations: int | None = None) -> int:
        """Run until stopped (or `max_iterations` reached). Returns iterations run."""
        while not self.stop_event.is_set():
            try:
                self.body()
            except Exception as e:
                self.failures += 1
                logger.exception(
                    'Iteration failed, retrying after the pause',
                    error_class=type(e).__name__, error=str(e),
                )
            self.iterations += 1
            if max_iterations is not None and self.iterations >= max_iterations:
                break
            logger.info('Sleeping until next pass', seconds=self.interval)
            if self.clock.wait(self.interval, self.stop_event):
                break
        logger.info(
            'Polling loop stopped',
            iterations=self.iterations, failures=self.failures,
        )
        return self.iterations
