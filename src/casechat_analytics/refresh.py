import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class AutoRefresh:
    """Call ``callback`` every ``interval`` seconds on a daemon thread until stopped."""

    def __init__(self, callback: Callable[[], object], interval: float = 60.0, run_immediately: bool = False):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.callback = callback
        self.interval = interval
        self.run_immediately = run_immediately
        self.runs = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    def tick(self) -> None:
        self.runs += 1
        try:
            self.callback()
        except Exception:
            logger.exception("Auto refresh callback failed")

    def _loop(self) -> None:
        if self.run_immediately:
            self.tick()
        while not self._stop.wait(self.interval):
            self.tick()

    def start(self) -> "AutoRefresh":
        if self.running:
            return self
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="auto-refresh", daemon=True)
        self._thread.start()
        return self

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()
