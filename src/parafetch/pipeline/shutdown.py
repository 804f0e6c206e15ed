"""Shutdown protocol sequencing input exhaustion to output closure.

Every submission is counted in ``OutstandingWork`` before it enters the input
channel, whether it comes from the source or from a scheduled requeue, and is
released only when the task that executed it has finished (after its result
was put on the output channel or its follow-up requeue was counted). Hence:

* the input channel is closed only once the source is exhausted and nothing is
  queued, running or waiting to be requeued, so no requeue ever targets a
  closed channel;
* the output channel is closed only after the same counter is zero again, so
  no worker can write to it afterwards.
"""

from __future__ import annotations

import logging
import threading

from parafetch.pipeline.channel import Channel, ChannelClosedError
from parafetch.pipeline.limiter import OutstandingWork
from parafetch.pipeline.models import Result, Submission

logger = logging.getLogger(__name__)


class ShutdownCoordinator:
    """Owns the two channels and decides when each one may close."""

    def __init__(
        self,
        *,
        inbox: Channel[Submission],
        outbox: Channel[Result],
        stop_event: threading.Event | None = None,
    ) -> None:
        self.inbox = inbox
        self.outbox = outbox
        self.outstanding = OutstandingWork()
        self.stop_event = stop_event or threading.Event()
        self._lock = threading.Lock()
        self._source_exhausted = False

    @property
    def stopping(self) -> bool:
        return self.stop_event.is_set()

    def submit(self, submission: Submission) -> None:
        """Count ``submission`` as outstanding work and enqueue it."""

        self.outstanding.add()
        try:
            self.inbox.put(submission)
        except ChannelClosedError:
            self.outstanding.done()
            raise

    def task_finished(self) -> None:
        self.outstanding.done()

    def source_exhausted(self) -> None:
        """Close the input channel once all outstanding work has drained."""

        with self._lock:
            if self._source_exhausted:
                return
            self._source_exhausted = True
        logger.debug("Source exhausted; waiting for %d outstanding item(s)", self.outstanding.count)
        self.outstanding.wait()
        self.inbox.close()
        logger.debug("Input channel closed")

    def finish_dispatch(self) -> None:
        """Close the output channel after every admitted task has finished."""

        self.outstanding.wait()
        self.outbox.close()
        logger.debug("Output channel closed")
