"""Core module - Configuration, signing and shared enums."""

from terraclient.core.config import (
    ClientConfig,
    ConfigurationError,
    RetryConfig,
    TransferLimits,
)
from terraclient.core.log import setup_logging
from terraclient.core.signing import (
    Credential,
    SignatureHeaders,
    Signer,
    build_signing_string,
    compute_digest,
    format_http_date,
)
from terraclient.core.types import (
    DeleteMode,
    JobStatus,
    JobType,
    ResourceType,
    ResultCode,
)

__all__ = [
    # Config
    "ClientConfig",
    "ConfigurationError",
    "RetryConfig",
    "TransferLimits",
    # Logging
    "setup_logging",
    # Signing
    "Credential",
    "SignatureHeaders",
    "Signer",
    "build_signing_string",
    "compute_digest",
    "format_http_date",
    # Types
    "DeleteMode",
    "JobStatus",
    "JobType",
    "ResourceType",
    "ResultCode",
]
