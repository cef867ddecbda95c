"""Shared enums for terraclient.

This module defines the status and type codes used by the reconstruction
service.
"""

from __future__ import annotations

from enum import Enum, IntEnum


class JobStatus(IntEnum):
    """Lifecycle status of a reconstruction job."""

    WAITING_FOR_START = 0
    WAITING = 1
    PREPARING = 2
    EXECUTING = 3
    RESULT_PROCESSING = 4
    STOPPED = 5
    FINISHED = 6
    FAILED = 7

    @property
    def is_terminal(self) -> bool:
        """Whether no further transition happens after this status."""
        return self in TERMINAL_JOB_STATUSES


TERMINAL_JOB_STATUSES = frozenset(
    {JobStatus.STOPPED, JobStatus.FINISHED, JobStatus.FAILED}
)


class JobType(IntEnum):
    """Reconstruction job type."""

    LIDAR = 13
    MAP_2D = 14
    MODEL_3D = 15


class ResourceType(str, Enum):
    """Type of a stored resource."""

    MAP = "map"
    JOB_OUTPUT = "job_output"


class DeleteMode(IntEnum):
    """What happens to files when a resource is deleted."""

    KEEP_FILES = 0
    DELETE_UNLINKED_FILES = 1


class ResultCode(IntEnum):
    """Known result codes of the service envelope."""

    SUCCESS = 0
    AUTHENTICATION_ERROR = 701
    JOB_LIMIT = 801
    SERVICE_FAILURE = 102000
    PARAMETER_ERROR = 102001
    RESOURCE_NOT_FOUND = 102002
    INVALID_OPERATION = 102003
    JOB_NOT_FOUND = 102114
    BILLING_FAILURE = 102116
