"""Shared fixtures for terraclient tests."""

from __future__ import annotations

import pytest

from terraclient.client.models import StsToken
from terraclient.core.config import ClientConfig, RetryConfig, TransferLimits

API_HOST = "https://api.test"


@pytest.fixture
def config() -> ClientConfig:
    """Client config with zero retry backoff."""
    return ClientConfig(
        app_key="test-app",
        secret_key="test-secret",
        api_host=API_HOST,
        retry=RetryConfig(max_retries=3, initial_backoff=0.0, max_backoff=0.0),
    )


@pytest.fixture
def small_limits() -> TransferLimits:
    """Small batch sizes so tests exercise several batches."""
    return TransferLimits(upload_batch_size=2, callback_batch_size=2, download_batch_size=2)


@pytest.fixture
def sts_token() -> StsToken:
    """An STS token as returned by obtain_token."""
    return StsToken.from_dict(
        {
            "accessKeyID": "AKID",
            "secretAccessKey": "sts-secret",
            "sessionToken": "sts-session",
            "region": "oss-cn-hangzhou",
            "cloudBucketName": "terra-bucket",
            "cloudName": "oss",
            "callbackParam": "cb-param",
            "storePath": "users/42/{fileName}",
            "expireTime": 3600,
        }
    )
