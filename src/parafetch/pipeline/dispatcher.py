"""Dispatch loop admitting identifiers into bounded concurrent execution."""

from __future__ import annotations

import logging
import threading

from parafetch.pipeline.channel import ChannelClosedError
from parafetch.pipeline.executor import TaskExecutor
from parafetch.pipeline.factory import TaskFactory
from parafetch.pipeline.limiter import ConcurrencyLimiter
from parafetch.pipeline.models import Outcome, PipelineCounters, Submission
from parafetch.pipeline.retry import RetryAction, RetryPolicy
from parafetch.pipeline.shutdown import ShutdownCoordinator

logger = logging.getLogger(__name__)


class Dispatcher:
    """Reads submissions, admits them through the limiter and runs each in a thread.

    The loop runs in the caller's thread and returns once the input channel
    is closed and the output channel has been closed behind the last task.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        coordinator: ShutdownCoordinator,
        limiter: ConcurrencyLimiter,
        factory: TaskFactory,
        executor: TaskExecutor,
        retry_policy: RetryPolicy,
        counters: PipelineCounters,
    ) -> None:
        self.coordinator = coordinator
        self.limiter = limiter
        self.factory = factory
        self.executor = executor
        self.retry_policy = retry_policy
        self.counters = counters

    def run(self) -> None:
        for submission in self.coordinator.inbox:
            self.limiter.acquire()
            thread = threading.Thread(
                target=self._run_task,
                args=(submission,),
                name=f"task-{submission.identifier}",
                daemon=True,
            )
            try:
                thread.start()
            except RuntimeError:
                self.limiter.release()
                self.coordinator.task_finished()
                raise
        self.coordinator.finish_dispatch()
        logger.debug("Dispatch finished")

    def _run_task(self, submission: Submission) -> None:
        try:
            self._execute_with_policy(submission)
        except Exception:
            logger.exception("Unexpected error in task id=%s", submission.identifier)
            self.counters.record_failed()
        finally:
            self.limiter.release()
            self.coordinator.task_finished()

    def _execute_with_policy(self, submission: Submission) -> None:
        identifier = submission.identifier
        attempt = submission.attempt
        while True:
            task = self.factory.build(identifier)
            result, outcome = self.executor.execute(task)
            attempt += 1
            if outcome is Outcome.SUCCESS and result is not None:
                self.coordinator.outbox.put(result)
                return

            decision = self.retry_policy.decide(
                outcome,
                attempt=attempt,
                stopping=self.coordinator.stopping,
            )
            if decision.action is RetryAction.ABANDON:
                self._abandon(identifier, attempt, outcome)
                return

            self.counters.record_retry()
            if decision.action is RetryAction.REQUEUE:
                self._schedule_requeue(Submission(identifier, attempt), decision.delay_seconds)
                return
            if decision.delay_seconds and self.coordinator.stop_event.wait(decision.delay_seconds):
                self._abandon(identifier, attempt, outcome)
                return
            logger.debug("Retrying id=%s (attempt %d, %s)", identifier, attempt + 1, outcome.value)

    def _schedule_requeue(self, submission: Submission, delay_seconds: float) -> None:
        # Counted before this task releases its own unit, so the input channel
        # stays open until the delay has elapsed or the run is stopped.
        self.coordinator.outstanding.add()
        waiter = threading.Thread(
            target=self._requeue_after,
            args=(submission, delay_seconds),
            name=f"requeue-{submission.identifier}",
            daemon=True,
        )
        try:
            waiter.start()
        except RuntimeError:
            self.coordinator.task_finished()
            raise
        logger.debug(
            "Requeue of id=%s scheduled in %.3fs (attempt %d)",
            submission.identifier,
            delay_seconds,
            submission.attempt,
        )

    def _requeue_after(self, submission: Submission, delay_seconds: float) -> None:
        self.coordinator.stop_event.wait(delay_seconds)
        self._requeue(submission)

    def _requeue(self, submission: Submission) -> None:
        # On success the queued submission carries the unit counted at
        # scheduling time; the task that executes it releases that unit.
        if self.coordinator.stopping:
            self._abandon(submission.identifier, submission.attempt, None)
            self.coordinator.task_finished()
            return
        try:
            self.coordinator.inbox.put(submission)
        except ChannelClosedError:
            logger.exception("Input closed before requeue of id=%s", submission.identifier)
            self.counters.record_failed()
            self.coordinator.task_finished()

    def _abandon(self, identifier: str, attempts: int, outcome: Outcome | None) -> None:
        self.counters.record_failed()
        reason = outcome.value if outcome is not None else "stopped"
        logger.error(
            "Permanently failed id=%s after %d attempt(s) (%s)",
            identifier,
            attempts,
            reason,
        )
