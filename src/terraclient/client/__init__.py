"""Client module - Signed HTTP access to the reconstruction API."""

from terraclient.client.api import (
    APIError,
    APIResult,
    AuthenticationError,
    Failure,
    HTTPClient,
    RemoteError,
    RequestBuilder,
    ServerUnavailableError,
    SignedRequest,
    Success,
    TransportError,
    decode_envelope,
    serialize_payload,
)
from terraclient.client.models import (
    CallbackFile,
    FileQuery,
    Job,
    JobQuery,
    Page,
    PaginationCursor,
    RemoteFile,
    Resource,
    ResourceQuery,
    ResourceSummary,
    StartJobRequest,
    StsToken,
)
from terraclient.client.retry import retry_with_backoff

__all__ = [
    # API
    "APIError",
    "APIResult",
    "AuthenticationError",
    "Failure",
    "HTTPClient",
    "RemoteError",
    "RequestBuilder",
    "ServerUnavailableError",
    "SignedRequest",
    "Success",
    "TransportError",
    "decode_envelope",
    "serialize_payload",
    # Models
    "CallbackFile",
    "FileQuery",
    "Job",
    "JobQuery",
    "Page",
    "PaginationCursor",
    "RemoteFile",
    "Resource",
    "ResourceQuery",
    "ResourceSummary",
    "StartJobRequest",
    "StsToken",
    # Retry
    "retry_with_backoff",
]
