"""Call job messages and the in-process queue that carries them."""

import queue
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class CallJob:
    """A request to process one recording.

    Attributes:
        recording_ref: The recording source's unique id for the call.
        record_group: Optional record group hint for the recording source.
        record_id: Optional recording variant hint.
        attempt: 1-based delivery counter, bumped on each retry.
    """

    recording_ref: str
    record_group: str | None = None
    record_id: str | None = None
    attempt: int = 1

    def next_attempt(self) -> "CallJob":
        """Return a copy of this job for redelivery."""
        return replace(self, attempt=self.attempt + 1)


class CallJobQueue:
    """Single logical FIFO queue of call jobs shared by a worker pool.

    Delivery is at-least-once: the same recording may be enqueued more than
    once and the pipeline's idempotency check decides what to do with it.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue[CallJob | None] = queue.Queue()

    def put(self, job: CallJob) -> None:
        """Enqueue a job."""
        self._queue.put(job)

    def get(self, timeout: float | None = None) -> CallJob | None:
        """Block until a job is available.

        Returns:
            CallJob | None: The next job, or None when a worker is asked
                to stop.

        Raises:
            queue.Empty: If timeout expires first.
        """
        return self._queue.get(timeout=timeout)

    def task_done(self) -> None:
        """Mark the most recently taken item as handled."""
        self._queue.task_done()

    def join(self) -> None:
        """Block until every enqueued item has been handled."""
        self._queue.join()

    def stop_worker(self) -> None:
        """Enqueue a sentinel that makes one worker exit."""
        self._queue.put(None)

    def qsize(self) -> int:
        """Approximate number of queued items."""
        return self._queue.qsize()
