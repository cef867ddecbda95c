"""Object storage access for uploads.

This module provides:
- ObjectStorage: Protocol for "put a file under a key, get its content tag"
- S3ObjectStorage: boto3 implementation using the service's STS token
- storage_client_kwargs: boto3 client arguments derived from a token
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

import boto3
from botocore.config import Config as BotoConfig

if TYPE_CHECKING:
    from terraclient.client.models import StsToken

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Object storage did not confirm an upload."""


class ObjectStorage(Protocol):
    """Blocking object storage used by the transfer orchestrator."""

    def put_object(self, bucket: str, key: str, path: Path) -> str:
        """Upload a file and return its content tag (ETag)."""
        ...


def storage_client_kwargs(token: StsToken, regional_endpoint: bool) -> dict[str, Any]:
    """Build boto3 client arguments for an STS token.

    Args:
        token: Temporary credentials from obtain_token.
        regional_endpoint: Use the region-suffixed S3-compatible endpoint
            (``https://<region>.aliyuncs.com``) with virtual-hosted addressing.

    Returns:
        Keyword arguments for ``boto3.client("s3", ...)``.
    """
    kwargs: dict[str, Any] = {
        "region_name": token.region,
        "aws_access_key_id": token.access_key_id,
        "aws_secret_access_key": token.secret_access_key,
        "aws_session_token": token.session_token,
    }
    if regional_endpoint:
        kwargs["endpoint_url"] = f"https://{token.region}.aliyuncs.com"
        kwargs["config"] = BotoConfig(s3={"addressing_style": "virtual"})
    return kwargs


class S3ObjectStorage:
    """S3-compatible storage backed by a boto3 client."""

    def __init__(self, s3_client: Any) -> None:
        self._client = s3_client

    @classmethod
    def from_token(cls, token: StsToken, regional_endpoint: bool) -> S3ObjectStorage:
        """Create a storage client from temporary credentials."""
        s3_client = boto3.client("s3", **storage_client_kwargs(token, regional_endpoint))
        logger.info(
            f"S3 client created for bucket {token.bucket} "
            f"({'regional endpoint' if regional_endpoint else 'default endpoint'})"
        )
        return cls(s3_client)

    def put_object(self, bucket: str, key: str, path: Path) -> str:
        """Upload a file and return the ETag reported by storage.

        Raises:
            StorageError: If no ETag was returned.
            botocore.exceptions.ClientError: If storage rejected the upload.
            OSError: If the local file cannot be read.
        """
        with open(path, "rb") as body:
            response = self._client.put_object(Bucket=bucket, Key=key, Body=body)
        etag = response.get("ETag")
        if not etag:
            raise StorageError(f"No ETag returned for {bucket}/{key}")
        logger.info(f"[put_object] {key} {etag}")
        return etag
