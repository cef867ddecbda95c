"""Configuration classes for terraclient.

This module provides:
- ClientConfig: Credentials, API host and tuning for one client instance
- RetryConfig: Transport retry policy
- TransferLimits: Batch sizes used by the transfer orchestrator
- ConfigurationError: Raised for missing or invalid settings
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from terraclient.core.signing import Credential

DEFAULT_API_HOST = "https://openapi-cn.dji.com"
API_PREFIX = "/terra-rescon-be/v2"

# Environment variables read by ClientConfig.from_env()
APP_KEY_ENV = "DJI_APP_KEY"
SECRET_KEY_ENV = "DJI_SECRET_KEY"
API_HOST_ENV = "TERRA_API_HOST"


class ConfigurationError(Exception):
    """Raised when the client cannot be constructed from its settings."""


@dataclass(frozen=True)
class RetryConfig:
    """Transport retry policy for idempotent calls.

    Attributes:
        max_retries: Retries after the first attempt.
        initial_backoff: Delay before the first retry, in seconds.
        max_backoff: Upper bound for a single delay, in seconds.
        backoff_multiplier: Factor applied to the delay after each retry.
    """

    max_retries: int = 3
    initial_backoff: float = 1.0
    max_backoff: float = 30.0
    backoff_multiplier: float = 2.0

    def __post_init__(self) -> None:
        """Validate retry settings."""
        if self.max_retries < 0:
            raise ConfigurationError(
                f"max_retries must be >= 0, got {self.max_retries}"
            )
        if self.initial_backoff < 0 or self.max_backoff < 0:
            raise ConfigurationError("backoff delays must be >= 0")


@dataclass(frozen=True)
class TransferLimits:
    """Batch sizes for bulk transfers.

    Attributes:
        upload_batch_size: Files uploaded concurrently per batch.
        callback_batch_size: Files registered per upload-callback request.
        download_batch_size: Files downloaded concurrently per batch.
    """

    upload_batch_size: int = 50
    callback_batch_size: int = 50
    download_batch_size: int = 100

    def __post_init__(self) -> None:
        """Reject non-positive limits."""
        for name in ("upload_batch_size", "callback_batch_size", "download_batch_size"):
            value = getattr(self, name)
            if value < 1:
                raise ConfigurationError(f"{name} must be >= 1, got {value}")


@dataclass
class ClientConfig:
    """Configuration for one reconstruction service client.

    Attributes:
        app_key: Application key, used as the signing identity.
        secret_key: Secret used to HMAC-sign requests. Never logged.
        api_host: Base URL of the open API (scheme and host).
        timeout: Request timeout in seconds.
        poll_interval: Seconds between job status polls.
        retry: Transport retry policy.
        limits: Transfer batch sizes.
    """

    app_key: str
    secret_key: str = field(repr=False)
    api_host: str = DEFAULT_API_HOST
    timeout: float = 30.0
    poll_interval: float = 10.0
    retry: RetryConfig = field(default_factory=RetryConfig)
    limits: TransferLimits = field(default_factory=TransferLimits)

    def __post_init__(self) -> None:
        """Validate credentials and normalize the API host."""
        if not self.app_key or not self.secret_key:
            raise ConfigurationError(f"{APP_KEY_ENV} or {SECRET_KEY_ENV} is not set")
        self.api_host = self.api_host.rstrip("/")

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> ClientConfig:
        """Build a configuration from environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.
            **overrides: ClientConfig fields. Any field given here wins over
                the environment (api_host, timeout, limits, ...).

        Returns:
            A validated ClientConfig.

        Raises:
            ConfigurationError: If the app key or secret key is missing.
        """
        env = os.environ if environ is None else environ
        overrides.setdefault("app_key", env.get(APP_KEY_ENV, ""))
        overrides.setdefault("secret_key", env.get(SECRET_KEY_ENV, ""))
        overrides.setdefault("api_host", env.get(API_HOST_ENV) or DEFAULT_API_HOST)
        return cls(**overrides)

    @property
    def base_url(self) -> str:
        """Root URL of the reconstruction API."""
        return f"{self.api_host}{API_PREFIX}"

    @property
    def credential(self) -> Credential:
        """Signing credential derived from the app key and secret."""
        from terraclient.core.signing import Credential

        return Credential.from_strings(self.app_key, self.secret_key)

    @property
    def uses_regional_storage_endpoint(self) -> bool:
        """Whether uploads go through the region-suffixed storage endpoint.

        Deployments whose host carries the ``-cn`` suffix store files in an
        S3-compatible service reached at ``https://<region>.aliyuncs.com``.
        """
        return "-cn" in self.api_host
