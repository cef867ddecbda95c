"""Jobs module - Polling reconstruction jobs to completion."""

from terraclient.jobs.poller import (
    DEFAULT_POLL_INTERVAL,
    JobError,
    JobFailedError,
    JobPoller,
    JobStoppedError,
    PollLimitExceeded,
)

__all__ = [
    "DEFAULT_POLL_INTERVAL",
    "JobError",
    "JobFailedError",
    "JobPoller",
    "JobStoppedError",
    "PollLimitExceeded",
]
