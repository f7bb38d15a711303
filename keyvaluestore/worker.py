"""
Single-consumer FIFO job queue on one daemon thread.
Jobs run strictly in submission order, never two at a time.
"""

import logging
import threading
from collections import deque
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Job = Callable[[], None]


class SerialWorker:
    """One background thread draining a FIFO of callables. Started lazily on first submit."""

    def __init__(self, name: str = "keyvaluestore"):
        self.name = name
        self._jobs: deque[Job] = deque()
        self._cond = threading.Condition()
        self._thread: Optional[threading.Thread] = None
        self._busy = False
        self._stopping = False

    def submit(self, job: Job) -> None:
        with self._cond:
            self._jobs.append(job)
            if self._thread is None or not self._thread.is_alive():
                self._stopping = False
                self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
                self._thread.start()
            self._cond.notify_all()

    def cancel_pending(self, match: Optional[Callable[[Job], bool]] = None) -> int:
        """Drop not-yet-started jobs, or only those match(job) accepts. A running job is left alone."""
        with self._cond:
            kept = deque(job for job in self._jobs if match is not None and not match(job))
            dropped = len(self._jobs) - len(kept)
            self._jobs = kept
            self._cond.notify_all()
        return dropped

    def pending(self) -> int:
        with self._cond:
            return len(self._jobs)

    def in_worker_thread(self) -> bool:
        return self._thread is not None and threading.current_thread() is self._thread

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until the queue is empty and no job is running. False on timeout."""
        if self.in_worker_thread():
            # waiting on ourselves would never return
            return not self._jobs
        with self._cond:
            return self._cond.wait_for(lambda: not self._jobs and not self._busy, timeout)

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """Stop the thread once queued jobs are done. A later submit starts a new one."""
        with self._cond:
            self._stopping = True
            self._cond.notify_all()
            thread = self._thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._jobs or self._stopping)
                if not self._jobs:
                    self._thread = None
                    self._cond.notify_all()
                    return
                job = self._jobs.popleft()
                self._busy = True
            try:
                job()
            except Exception:
                logger.exception("Background job failed on %s", self.name)
            finally:
                with self._cond:
                    self._busy = False
                    self._cond.notify_all()
