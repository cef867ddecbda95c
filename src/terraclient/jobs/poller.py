"""Job status polling.

This module provides:
- JobPoller: Re-fetches a job on a fixed interval until it is terminal
- JobError and subclasses: Failed, stopped and poll-limit outcomes

Stopped (5), finished (6) and failed (7) are all terminal. Only finished
is returned normally; the other two raise distinct errors.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from terraclient.core.types import JobStatus

if TYPE_CHECKING:
    from terraclient.client.models import Job

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 10.0  # seconds


class JobError(Exception):
    """Base exception for job outcomes other than finished."""

    def __init__(self, message: str, job: Job | None = None, polls: int | None = None) -> None:
        super().__init__(message)
        self.job = job
        self.polls = polls


class JobFailedError(JobError):
    """The job reached the failed status."""


class JobStoppedError(JobError):
    """The job was stopped before finishing."""


class PollLimitExceeded(JobError):
    """The job was still running after the maximum number of polls."""


class JobPoller:
    """Polls a job until it reaches a terminal status.

    Usage:
        poller = JobPoller(client.get_job, interval=10)
        job = await poller.wait(job_uuid)
    """

    def __init__(
        self,
        fetch: Callable[[str], Awaitable[Job]],
        interval: float = DEFAULT_POLL_INTERVAL,
        max_polls: int | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_update: Callable[[Job], None] | None = None,
    ) -> None:
        """Initialize the poller.

        Args:
            fetch: Coroutine returning the current job for a uuid.
            interval: Seconds to wait between fetches.
            max_polls: Optional limit on fetches. None polls until terminal.
            sleep: Awaitable sleep (injectable for tests).
            on_update: Optional callback invoked with every fetched job.
        """
        if max_polls is not None and max_polls < 1:
            raise ValueError(f"max_polls must be >= 1, got {max_polls}")
        self._fetch = fetch
        self._interval = interval
        self._max_polls = max_polls
        self._sleep = sleep
        self._on_update = on_update

    async def wait(self, uuid: str) -> Job:
        """Poll until the job is terminal.

        The first fetch happens immediately; the poller sleeps only between
        non-terminal fetches.

        Returns:
            The finished job.

        Raises:
            JobFailedError: If the job failed.
            JobStoppedError: If the job was stopped.
            PollLimitExceeded: If max_polls fetches returned a non-terminal status.
        """
        polls = 0

        while True:
            job = await self._fetch(uuid)
            polls += 1
            progress = f", {job.percentage:.0%}" if job.percentage is not None else ""
            logger.info(
                f"Job {uuid}: {job.status.name.lower()} (poll {polls}{progress})"
            )
            if self._on_update:
                self._on_update(job)

            if job.status.is_terminal:
                break
            if self._max_polls is not None and polls >= self._max_polls:
                raise PollLimitExceeded(
                    f"Job {uuid} still {job.status.name.lower()} after {polls} polls",
                    job,
                    polls,
                )
            await self._sleep(self._interval)

        if job.status == JobStatus.FAILED:
            raise JobFailedError(f"Job {uuid} failed: {job.message or 'no message'}", job, polls)
        if job.status == JobStatus.STOPPED:
            raise JobStoppedError(f"Job {uuid} was stopped", job, polls)
        return job
