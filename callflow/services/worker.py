"""Fixed-size worker pool consuming call jobs.

Each worker thread takes one job at a time, opens its own database session,
runs the pipeline for that job start to finish and closes the session before
taking the next one.
"""

import logging
import threading
from collections.abc import Callable

from sqlalchemy.orm import Session

from callflow.config import Settings, get_settings
from callflow.db import get_session_factory
from callflow.services.jobs import CallJob, CallJobQueue
from callflow.services.pipeline import PipelineResult, process_call_job

logger = logging.getLogger(__name__)

ProcessFunc = Callable[[Session, CallJob, Settings], PipelineResult]


class WorkerPool:
    """Bounded pool of threads draining a CallJobQueue.

    A failed job is retried while its attempt number is below
    JOB_MAX_ATTEMPTS, after an exponential backoff starting at
    JOB_RETRY_BACKOFF_SECONDS. A job waiting for its retry still counts as
    unfinished, so join() keeps blocking until it has run.

    `failed` counts jobs whose final attempt failed; `retried` counts
    attempts that were followed by a retry.
    """

    def __init__(
        self,
        queue: CallJobQueue,
        size: int | None = None,
        settings: Settings | None = None,
        session_factory: Callable[[], Session] | None = None,
        process: ProcessFunc = process_call_job,
    ) -> None:
        self.settings = settings or get_settings()
        self.queue = queue
        self.size = size or self.settings.WORKER_CONCURRENCY
        if self.size <= 0:
            raise ValueError("size must be positive")
        self._session_factory = session_factory
        self._process = process
        self._threads: list[threading.Thread] = []
        self._timers: list[threading.Timer] = []
        self._lock = threading.Lock()
        self.completed = 0
        self.failed = 0
        self.retried = 0

    def start(self) -> None:
        """Start the worker threads."""
        if self._threads:
            raise RuntimeError("WorkerPool already started")
        if self._session_factory is None:
            self._session_factory = get_session_factory()
        for index in range(self.size):
            thread = threading.Thread(
                target=self._worker_loop,
                name=f"call-worker-{index}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        logger.info(f"Started {self.size} call workers")

    def join(self) -> None:
        """Block until the queue is drained, including pending retries."""
        self.queue.join()

    def stop(self, timeout: float | None = None) -> None:
        """Stop all workers once they finish their current job."""
        with self._lock:
            for timer in self._timers:
                timer.cancel()
            self._timers.clear()
        for _ in self._threads:
            self.queue.stop_worker()
        for thread in self._threads:
            thread.join(timeout)
        self._threads.clear()
        logger.info(
            f"Call workers stopped ({self.completed} succeeded, "
            f"{self.failed} failed, {self.retried} retried)"
        )

    def run_until_drained(self) -> None:
        """Start the pool, wait for the queue to drain, then stop."""
        self.start()
        try:
            self.join()
        finally:
            self.stop()

    def _worker_loop(self) -> None:
        while True:
            job = self.queue.get()
            if job is None:
                self.queue.task_done()
                return
            retry_scheduled = False
            try:
                retry_scheduled = self._handle(job)
            finally:
                if not retry_scheduled:
                    self.queue.task_done()

    def _handle(self, job: CallJob) -> bool:
        """Process one job. Returns True if a retry was scheduled."""
        session = None
        try:
            session = self._session_factory()
            result = self._process(session, job, self.settings)
            with self._lock:
                self.completed += 1
            logger.info(
                f"Job for {job.recording_ref} finished: {result.status.value} ({result.message})"
            )
            return False
        except Exception as e:
            logger.error(
                f"Job for {job.recording_ref} failed on attempt {job.attempt}: {e}",
                exc_info=True,
            )
            if job.attempt < self.settings.JOB_MAX_ATTEMPTS:
                with self._lock:
                    self.retried += 1
                self._schedule_retry(job)
                return True
            with self._lock:
                self.failed += 1
            return False
        finally:
            if session is not None:
                session.close()

    def _schedule_retry(self, job: CallJob) -> None:
        delay = self.settings.JOB_RETRY_BACKOFF_SECONDS * (2 ** (job.attempt - 1))
        retry = job.next_attempt()
        logger.info(
            f"Retrying {job.recording_ref} in {delay:.1f}s (attempt {retry.attempt})"
        )

        def requeue() -> None:
            # Put the retry before releasing the original so join() never sees zero
            self.queue.put(retry)
            self.queue.task_done()
            with self._lock:
                if timer in self._timers:
                    self._timers.remove(timer)

        timer = threading.Timer(delay, requeue)
        timer.daemon = True
        with self._lock:
            self._timers.append(timer)
        timer.start()
