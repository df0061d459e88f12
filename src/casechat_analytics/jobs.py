import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from .config import JOB_TIMEOUT_MAX, JOB_TIMEOUT_MIN
from .errors import ApiError

logger = logging.getLogger(__name__)

IDLE = "idle"
SUBMITTED = "submitted"
POLLING = "polling"
COMPLETED = "completed"
FAILED = "failed"
TIMED_OUT = "timed_out"
ABORTED = "aborted"
DETACHED = "detached"

TERMINAL_STATES = {COMPLETED, FAILED, TIMED_OUT, ABORTED}
ACTIVE_STATUSES = {"pending", "processing"}

DEFAULT_INTERVAL = 2.0
DEFAULT_TIMEOUT = 300.0
TIMEOUT_MESSAGE = "Taking longer than expected; processing continues in the background"
FAILED_MESSAGE = "Processing failed"


class OutlineJobTracker:
    """Submit an outline job for one case file and follow it until it settles.

    The tracker owns a piece of staged content (the outline being edited).
    A completed job replaces it; an abort restores whatever was staged when
    the job was submitted. Detaching or timing out never cancels the job on
    the backend, and ``reattach`` picks the polling back up.

    All waiting happens on a ``threading.Event`` so ``abort``/``detach`` from
    another thread interrupt a sleeping poll loop immediately.
    A status fetch already on the wire is waited out first.
    """

    def __init__(
        self,
        client,
        case_id: str,
        file_id: str,
        model_id: Optional[str] = None,
        interval: float = DEFAULT_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT,
        content: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not JOB_TIMEOUT_MIN <= timeout <= JOB_TIMEOUT_MAX:
            raise ValueError(f"timeout must be between {JOB_TIMEOUT_MIN} and {JOB_TIMEOUT_MAX} seconds, got {timeout}")
        if interval < 0:
            raise ValueError("interval must be non-negative")

        self.client = client
        self.case_id = case_id
        self.file_id = file_id
        self.model_id = model_id
        self.interval = interval
        self.timeout = timeout
        self._clock = clock

        self.state = IDLE
        self.content = content
        self.error: Optional[str] = None
        self.message: Optional[str] = None
        self.last_status: Optional[Dict[str, Any]] = None
        self.polls = 0
        self.deadline: Optional[float] = None

        self._before: Optional[str] = content
        self._generation = 0
        self._lock = threading.RLock()
        self._poll_lock = threading.RLock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def __repr__(self):
        return f"OutlineJobTracker(case_id={self.case_id!r}, file_id={self.file_id!r}, state={self.state!r})"

    @property
    def is_active(self) -> bool:
        return self.state in (SUBMITTED, POLLING)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def _set_state(self, state: str) -> None:
        if state != self.state:
            logger.info("Outline job %s/%s: %s -> %s", self.case_id, self.file_id, self.state, state)
        self.state = state

    def _arm(self) -> None:
        self._generation += 1
        self._stop.clear()
        self.deadline = self._clock() + self.timeout
        self.message = None
        self._set_state(POLLING)

    def _disarm(self, state: str) -> None:
        self._generation += 1
        self._stop.set()
        self._set_state(state)

    def stage(self, content: Optional[str]) -> None:
        """Replace the locally staged outline."""

        with self._lock:
            self.content = content

    def submit(self) -> str:
        with self._lock:
            if self.is_active:
                raise RuntimeError(f"Job already {self.state}")
            self._before = self.content
            self.error = None
            self.message = None
            self._set_state(SUBMITTED)

        try:
            self.client.submit_outline_job(self.case_id, self.file_id, self.model_id)
        except ApiError as exc:
            with self._lock:
                self.error = exc.message or FAILED_MESSAGE
                self._set_state(FAILED)
            return self.state

        with self._lock:
            if self.state == SUBMITTED:
                self._arm()
            return self.state

    def wait(self) -> str:
        """Poll until the job settles, times out, or polling is stopped. Never raises."""

        with self._lock:
            generation = self._generation

        while True:
            with self._lock:
                if self.state != POLLING or self._generation != generation:
                    return self.state
                if self._clock() >= self.deadline:
                    self.message = TIMEOUT_MESSAGE
                    self._disarm(TIMED_OUT)
                    return self.state

            if self._stop.wait(self.interval):
                continue

            # held through the fetch so abort/detach never return with a request in flight
            with self._poll_lock:
                with self._lock:
                    if self.state != POLLING or self._generation != generation:
                        return self.state
                    self.polls += 1

                try:
                    status = self.client.get_outline_status(self.case_id, self.file_id)
                except ApiError as exc:
                    # transient; keep polling until the deadline
                    logger.warning("Outline status fetch failed for %s/%s: %s", self.case_id, self.file_id, exc)
                    continue
                except Exception as exc:
                    logger.exception("Outline status check crashed for %s/%s", self.case_id, self.file_id)
                    with self._lock:
                        if self.state == POLLING and self._generation == generation:
                            self.error = f"Status check failed: {exc}"
                            self._disarm(FAILED)
                        return self.state

                with self._lock:
                    if self.state != POLLING or self._generation != generation:
                        return self.state
                    self._apply(status or {})

    def _apply(self, status: Dict[str, Any]) -> None:
        if not isinstance(status, dict):
            logger.error("Malformed outline status for %s/%s: %r", self.case_id, self.file_id, status)
            self.error = "Malformed processing status"
            self._disarm(FAILED)
            return
        self.last_status = status
        value = str(status.get("processing_status") or "").lower()
        if value in ACTIVE_STATUSES:
            return
        if value == COMPLETED:
            self.content = status.get("outline_content")
            self._disarm(COMPLETED)
        elif value == FAILED:
            self.error = status.get("processing_error") or FAILED_MESSAGE
            self._disarm(FAILED)
        else:
            self.error = f"Unexpected processing status '{value or 'none'}'"
            self._disarm(FAILED)

    def run(self) -> str:
        self.submit()
        return self.wait()

    def start(self) -> threading.Thread:
        """Run (or, after ``reattach``, resume) the job on a daemon thread."""

        target = self.wait if self.state == POLLING else self.run
        self._thread = threading.Thread(target=target, name=f"outline-job-{self.file_id}", daemon=True)
        self._thread.start()
        return self._thread

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def abort(self) -> bool:
        """Stop polling now and restore the content staged before submission.

        Only valid while polling; returns False (and changes nothing) otherwise.
        Waits for an in-flight status fetch, so no request is made once this returns.
        """

        with self._poll_lock, self._lock:
            if self.state != POLLING:
                return False
            self.content = self._before
            self._disarm(ABORTED)
            return True

    def detach(self) -> bool:
        with self._poll_lock, self._lock:
            if self.state != POLLING:
                return False
            self._disarm(DETACHED)
            return True

    def reattach(self) -> bool:
        with self._lock:
            if self.state not in (DETACHED, TIMED_OUT):
                return False
            self._arm()
            return True

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "state": self.state,
                "content": self.content,
                "error": self.error,
                "message": self.message,
                "polls": self.polls,
            }
