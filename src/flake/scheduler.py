import threading
import time
from collections.abc import Callable


class Scheduler:
    """Fixed-interval tick source with a cancellable wait.

    Ticks are aligned to `start() + n * interval`. A consumer that falls
    behind sees at most one pending tick: every due time that has already
    passed collapses into the tick delivered by the next `wait()`.

    Attributes:
        interval (float): Seconds between ticks.
    """

    def __init__(
        self, interval: float, clock: Callable[[], float] = time.monotonic
    ) -> None:
        if interval <= 0:
            raise ValueError(f"Interval must be positive, got {interval}")
        self.interval = interval
        self._clock = clock
        self._cancelled = threading.Event()
        self._next_due: float | None = None

    def start(self) -> "Scheduler":
        """Anchors the tick grid at the current time and returns self."""
        self._next_due = self._clock() + self.interval
        return self

    def wait(self) -> bool:
        """Blocks until the next tick is due.

        Returns:
            bool: True when a tick fired, False if the scheduler was cancelled.
        """
        if self._next_due is None:
            self.start()

        remaining = self._next_due - self._clock()
        if remaining > 0 and self._cancelled.wait(remaining):
            return False
        if self._cancelled.is_set():
            return False

        # A wait that wakes a little early still consumes this tick.
        self._next_due += self.interval
        now = self._clock()
        while self._next_due <= now:
            self._next_due += self.interval
        return True

    def cancel(self) -> None:
        """Wakes any pending wait and makes every later wait return False."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()
