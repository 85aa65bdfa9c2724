"""Status polling for submitted jobs."""

import time
from typing import Optional, Callable
import logging

from bqtransfer.domain.models import JobSnapshot, PollPolicy
from bqtransfer.domain.warehouse import IWarehouseClient
from bqtransfer.domain.exceptions import (
    TransportError,
    RemoteJobError,
    PollTimeoutError,
)
from bqtransfer.shared.retry import RetryStrategy


class JobPoller:
    """
    Reads job status snapshots.

    ``check`` is a single remote read. ``wait`` layers a bounded loop on
    top of it through a JobHandle.
    """

    def __init__(
        self,
        warehouse: IWarehouseClient,
        policy: Optional[PollPolicy] = None,
        logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        self._warehouse = warehouse
        self.policy = policy or PollPolicy()
        self.logger = logger or logging.getLogger(__name__)
        self.sleep = sleep
        self.clock = clock

    def check(self, job_id: str) -> JobSnapshot:
        """
        Fetch one status snapshot.

        A non-terminal snapshot is a normal result, not an error.

        Raises:
            NotFoundError: Unknown or expired job id
            TransportError: Service unreachable
        """
        snapshot = self._warehouse.get_job(job_id)
        self.logger.debug(f"Job {job_id} status: {snapshot.status.value}")
        return snapshot

    def handle(self, job_id: str) -> 'JobHandle':
        return JobHandle(self, job_id)

    def wait(self, job_id: str, policy: Optional[PollPolicy] = None) -> JobSnapshot:
        """Poll ``job_id`` until it is terminal. See JobHandle.wait."""
        return self.handle(job_id).wait(policy)


class JobHandle:
    """
    Client-side tracker for one job.

    Observed statuses never go backwards: a read that reports an earlier
    status than one already seen is ignored. Once a terminal snapshot is
    held, polling returns it without contacting the service.
    """

    def __init__(self, poller: JobPoller, job_id: str):
        self._poller = poller
        self.job_id = job_id
        self.last: Optional[JobSnapshot] = None
        self.polls = 0

    @property
    def is_terminal(self) -> bool:
        return self.last is not None and self.last.is_terminal

    def poll(self) -> JobSnapshot:
        """Single-shot check, clamped to the furthest status seen so far."""
        if self.is_terminal:
            return self.last

        snapshot = self._poller.check(self.job_id)
        self.polls += 1

        if self.last is not None and snapshot.status.rank < self.last.status.rank:
            self._poller.logger.warning(
                f"Job {self.job_id} reported {snapshot.status.value} after "
                f"{self.last.status.value}; keeping {self.last.status.value}"
            )
            return self.last

        self.last = snapshot
        return snapshot

    def wait(self, policy: Optional[PollPolicy] = None) -> JobSnapshot:
        """
        Poll until the job is terminal.

        Transport errors are retried up to ``policy.transport_retries`` times
        per poll; NotFoundError and a terminal ERROR are never retried.

        Returns:
            The DONE snapshot

        Raises:
            RemoteJobError: The job finished with ERROR
            PollTimeoutError: Timeout or max attempts exhausted
            NotFoundError: Unknown job id
            TransportError: Retries exhausted
        """
        policy = policy or self._poller.policy
        logger = self._poller.logger
        retry = RetryStrategy(
            max_attempts=policy.transport_retries + 1,
            backoff_seconds=policy.backoff_seconds,
            max_backoff=max(policy.interval, policy.backoff_seconds),
            retry_on=(TransportError,),
            sleep=self._poller.sleep,
            on_retry=lambda attempt, e, delay: logger.warning(
                f"Polling job {self.job_id} failed (attempt {attempt}): {e}; retrying in {delay:.1f}s"
            ),
        )

        start = self._poller.clock()
        attempts = 0

        while True:
            snapshot = retry.execute(self.poll)
            attempts += 1

            if snapshot.is_done:
                logger.info(f"Job {self.job_id} is DONE after {attempts} poll(s)")
                return snapshot

            if snapshot.is_error:
                raise RemoteJobError(
                    self.job_id,
                    snapshot.error.message if snapshot.error else "Job failed",
                    reason=snapshot.error.reason if snapshot.error else None,
                )

            if policy.max_attempts is not None and attempts >= policy.max_attempts:
                raise PollTimeoutError(
                    self.job_id,
                    f"Job {self.job_id} still {snapshot.status.value} after {attempts} poll(s)",
                    last_snapshot=snapshot,
                )

            elapsed = self._poller.clock() - start
            if elapsed >= policy.timeout:
                raise PollTimeoutError(
                    self.job_id,
                    f"Job {self.job_id} still {snapshot.status.value} after {elapsed:.0f}s",
                    last_snapshot=snapshot,
                )

            logger.info(
                f"Job {self.job_id} status: {snapshot.status.value} "
                f"(elapsed: {elapsed:.0f}s)"
            )
            self._poller.sleep(min(policy.interval, policy.timeout - elapsed))
