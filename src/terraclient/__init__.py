"""terraclient - Client SDK for the cloud reconstruction API.

Signs every request with the service's HMAC scheme, uploads image sets to
object storage in bounded concurrent batches, registers them with a
resource, runs reconstruction jobs and downloads their output.
"""

from terraclient.client.api import (
    APIError,
    AuthenticationError,
    HTTPClient,
    RemoteError,
    TransportError,
)
from terraclient.core.config import (
    ClientConfig,
    ConfigurationError,
    RetryConfig,
    TransferLimits,
)
from terraclient.core.log import setup_logging
from terraclient.core.types import JobStatus, JobType, ResourceType
from terraclient.jobs.poller import (
    JobError,
    JobFailedError,
    JobPoller,
    JobStoppedError,
    PollLimitExceeded,
)
from terraclient.transfer.orchestrator import (
    PartialTransferError,
    TransferError,
    TransferOrchestrator,
)
from terraclient.workflow import ReconstructionWorkflow

__version__ = "0.1.0"

__all__ = [
    "APIError",
    "AuthenticationError",
    "ClientConfig",
    "ConfigurationError",
    "HTTPClient",
    "JobError",
    "JobFailedError",
    "JobPoller",
    "JobStatus",
    "JobStoppedError",
    "JobType",
    "PartialTransferError",
    "PollLimitExceeded",
    "ReconstructionWorkflow",
    "RemoteError",
    "ResourceType",
    "RetryConfig",
    "TransferError",
    "TransferLimits",
    "TransferOrchestrator",
    "TransportError",
    "setup_logging",
]
