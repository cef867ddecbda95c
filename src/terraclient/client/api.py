"""HTTP client for the reconstruction API.

This module provides:
- RequestBuilder: Serializes a payload and signs it into a SignedRequest
- Success / Failure: Tagged result decoded from the service envelope
- HTTPClient: Async client exposing the token, resource, file and job endpoints
- APIError and subclasses: Errors raised by service calls
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar
from urllib.parse import urlencode, urlsplit, urlunsplit

import httpx

from terraclient.client.models import (
    CallbackFile,
    FileQuery,
    Job,
    JobQuery,
    Page,
    RemoteFile,
    Resource,
    ResourceQuery,
    ResourceSummary,
    StartJobRequest,
    StsToken,
)
from terraclient.client.retry import TRANSIENT_EXCEPTIONS, retry_with_backoff
from terraclient.core.config import ClientConfig
from terraclient.core.signing import Signer
from terraclient.core.types import DeleteMode, ResourceType, ResultCode

logger = logging.getLogger(__name__)

T = TypeVar("T")

JSON_CONTENT_TYPE = "application/json;charset=UTF-8"


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class RemoteError(APIError):
    """The service answered with a non-zero result code."""


class AuthenticationError(RemoteError):
    """The request signature or app key was rejected."""


class TransportError(APIError):
    """Network failure, timeout or server error after retries."""


class ServerUnavailableError(TransportError):
    """The server answered with a 5xx status."""


RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (
    *TRANSIENT_EXCEPTIONS,
    ServerUnavailableError,
)


# === Request building ===


@dataclass(frozen=True)
class SignedRequest:
    """A fully headered request, built fresh for each attempt."""

    method: str
    url: str
    request_path: str
    body: bytes
    headers: dict[str, str]

    @property
    def date(self) -> str:
        return self.headers["Date"]

    @property
    def digest(self) -> str:
        return self.headers["Digest"]


def serialize_payload(payload: Any) -> bytes:
    """Turn a payload into the exact bytes that will be sent.

    None and "" become an empty body; str is UTF-8 encoded; bytes pass
    through; anything else is encoded as compact JSON.
    """
    if payload is None:
        return b""
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def request_target(url: str) -> str:
    """Return the path plus query string exactly as httpx will send it."""
    return httpx.URL(url).raw_path.decode("ascii")


def redact_url(url: str) -> str:
    """Return url without credentials, query string or fragment.

    Pre-signed download URLs carry their signature in the query, so only
    this form is fit for logs and error messages.
    """
    parts = urlsplit(url)
    host = parts.netloc.rpartition("@")[2]
    return urlunsplit((parts.scheme, host, parts.path, "", ""))


class RequestBuilder:
    """Builds signed requests from (method, url, payload)."""

    def __init__(
        self,
        signer: Signer,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the builder.

        Args:
            signer: Signer holding the client credential.
            clock: Returns the signing time. Defaults to the current UTC time.
        """
        self._signer = signer
        self._clock = clock or (lambda: datetime.now(UTC))

    def build(
        self,
        method: str,
        url: str,
        payload: Any = None,
        extra_headers: dict[str, str] | None = None,
    ) -> SignedRequest:
        """Serialize the payload and sign the request.

        Args:
            method: HTTP method.
            url: Full URL including query string.
            payload: Request body (see serialize_payload).
            extra_headers: Unsigned headers added after signing.

        Returns:
            The signed request.
        """
        body = serialize_payload(payload)
        path = request_target(url)
        signature = self._signer.sign(method, path, body, self._clock())

        headers = signature.as_dict()
        if body:
            headers["Content-Type"] = JSON_CONTENT_TYPE
        if extra_headers:
            headers.update(extra_headers)

        return SignedRequest(
            method=method.upper(),
            url=url,
            request_path=path,
            body=body,
            headers=headers,
        )


# === Response envelope ===


@dataclass(frozen=True)
class Success(Generic[T]):
    """Envelope with result code 0."""

    data: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.data


@dataclass(frozen=True)
class Failure:
    """Envelope with a non-zero result code."""

    code: int
    message: str
    description: str = ""

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        """Raise the error carried by this result."""
        if self.code == ResultCode.AUTHENTICATION_ERROR:
            raise AuthenticationError(self.message, self.code)
        raise RemoteError(self.message, self.code)


APIResult = Success[Any] | Failure


def decode_envelope(body: Any) -> APIResult:
    """Decode ``{"result": {"code", "msg", "desc"}, "data": ...}``.

    Raises:
        APIError: If the body is not an envelope or its result code is not an integer.
    """
    if not isinstance(body, dict) or not isinstance(body.get("result"), dict):
        raise APIError("Malformed response envelope")
    result = body["result"]
    code = result.get("code")
    if not isinstance(code, int) or isinstance(code, bool):
        raise APIError(f"Malformed response envelope: result code {code!r}")
    if code == ResultCode.SUCCESS:
        return Success(body.get("data"))
    return Failure(
        code=code,
        message=result.get("msg") or "",
        description=result.get("desc") or "",
    )


# === Client ===


class HTTPClient:
    """Async client for the reconstruction API.

    One instance owns one credential and one connection pool; both are
    shared read-only by concurrent calls.

    Usage:
        async with HTTPClient(ClientConfig.from_env()) as client:
            token = await client.obtain_token()
    """

    def __init__(
        self,
        config: ClientConfig,
        http: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the client.

        Args:
            config: Client configuration (credentials, host, retry policy).
            http: Optional pre-built httpx client. Closed by the caller.
            clock: Optional clock for request signing.
            sleep: Awaitable sleep used between retries.
        """
        self._config = config
        self._builder = RequestBuilder(Signer(config.credential), clock=clock)
        self._http = http or httpx.AsyncClient(timeout=config.timeout)
        self._owns_http = http is None
        self._sleep = sleep

    @classmethod
    def from_env(cls, **kwargs: Any) -> HTTPClient:
        """Create a client from DJI_APP_KEY / DJI_SECRET_KEY."""
        return cls(ClientConfig.from_env(), **kwargs)

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def builder(self) -> RequestBuilder:
        return self._builder

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> HTTPClient:
        """Context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Context manager exit."""
        await self.close()

    def url(self, path: str, params: dict[str, str] | None = None) -> str:
        """Build a full API URL."""
        url = f"{self._config.base_url}/{path}"
        if params:
            url = f"{url}?{urlencode(params)}"
        return url

    async def dispatch(self, request: SignedRequest) -> APIResult:
        """Send a signed request and decode the envelope.

        Raises:
            ServerUnavailableError: On a 5xx status.
            APIError: If the body is not a JSON envelope.
        """
        response = await self._http.request(
            request.method,
            request.url,
            content=request.body,
            headers=request.headers,
        )
        if response.status_code >= 500:
            raise ServerUnavailableError(
                f"Server error {response.status_code} for "
                f"{request.method} {request.request_path}",
                response.status_code,
            )
        try:
            body = response.json()
        except ValueError as e:
            raise APIError(
                f"Unexpected non-JSON response ({response.status_code}) for "
                f"{request.method} {request.request_path}",
                response.status_code,
            ) from e
        return decode_envelope(body)

    async def _with_retry(
        self,
        func: Callable[[], Awaitable[T]],
        retry_safe: bool,
        label: str,
    ) -> T:
        retry = self._config.retry
        try:
            return await retry_with_backoff(
                func,
                max_retries=retry.max_retries if retry_safe else 0,
                initial_backoff=retry.initial_backoff,
                max_backoff=retry.max_backoff,
                backoff_multiplier=retry.backoff_multiplier,
                retryable_exceptions=RETRYABLE_EXCEPTIONS,
                sleep=self._sleep,
            )
        except TRANSIENT_EXCEPTIONS as e:
            raise TransportError(f"{label} failed: {e}") from e

    async def call(
        self,
        method: str,
        path: str,
        payload: Any = None,
        *,
        params: dict[str, str] | None = None,
        idempotent: bool | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> Any:
        """Sign, send and unwrap one API call.

        Each attempt is signed again so retries carry a fresh Date header.

        Args:
            method: HTTP method.
            path: Path relative to the API root.
            payload: Request body.
            params: Query parameters.
            idempotent: Whether transport failures may be retried. Defaults
                to True for GET only.
            extra_headers: Unsigned headers to add.

        Returns:
            The ``data`` member of a successful envelope.

        Raises:
            RemoteError: If the result code is non-zero.
            TransportError: If the request could not be completed.
        """
        url = self.url(path, params)
        retry_safe = method.upper() == "GET" if idempotent is None else idempotent

        async def attempt() -> APIResult:
            request = self._builder.build(method, url, payload, extra_headers)
            return await self.dispatch(request)

        result = await self._with_retry(attempt, retry_safe, f"{method.upper()} {path}")
        return result.unwrap()

    # === Upload token ===

    async def obtain_token(self) -> StsToken:
        """Obtain temporary object storage credentials for uploading.

        Returns:
            STS token with bucket, store path and callback parameter.
        """
        data = await self.call("POST", "store/obtain_token", "", idempotent=True)
        token = StsToken.from_dict(data)
        logger.info(
            f"[obtain_token] bucket={token.bucket} region={token.region} "
            f"expires={token.expire_time}"
        )
        return token

    async def upload_callback(
        self,
        callback_param: str,
        files: Sequence[CallbackFile],
        resource_uuid: str,
    ) -> list[RemoteFile]:
        """Register one round of uploaded files with a resource.

        Args:
            callback_param: Callback parameter from the STS token.
            files: Uploaded files with their content tags.
            resource_uuid: Resource to link the files to.

        Returns:
            The registered files.
        """
        payload = {
            "callbackParam": callback_param,
            "files": [f.to_dict() for f in files],
            "resourceUUID": resource_uuid,
        }
        data = await self.call("POST", "store/upload_callback", payload)
        registered = [RemoteFile.from_dict(f) for f in data or []]
        logger.info(f"[upload_callback] registered {len(registered)} files to {resource_uuid}")
        return registered

    # === Resource operations ===

    async def create_resource(
        self,
        name: str,
        type: ResourceType = ResourceType.MAP,
        meta: str | None = None,
        files: list[str] | None = None,
    ) -> ResourceSummary:
        """Create a resource.

        Args:
            name: Resource name.
            type: Resource type.
            meta: Optional user extension information.
            files: Optional file uuids to add to the resource.

        Returns:
            The created resource.
        """
        payload: dict[str, Any] = {"name": name, "type": type.value}
        if meta is not None:
            payload["meta"] = meta
        if files is not None:
            payload["files"] = files
        data = await self.call(
            "POST",
            "resources",
            payload,
            extra_headers={"Return-Detail": "true"},
        )
        resource = ResourceSummary.from_dict(data)
        logger.info(f"[create_resource] {resource.name} -> {resource.uuid}")
        return resource

    async def delete_resource(
        self,
        uuid: str,
        delete_mode: DeleteMode = DeleteMode.KEEP_FILES,
    ) -> None:
        """Delete a resource.

        Args:
            uuid: Resource uuid.
            delete_mode: Whether files not linked elsewhere are deleted too.
        """
        await self.call(
            "DELETE",
            f"resources/{uuid}",
            params={"deleteMode": str(int(delete_mode))},
        )
        logger.info(f"[delete_resource] {uuid}")

    async def get_resource(self, uuid: str) -> Resource:
        """Get a resource with its file and job uuids."""
        data = await self.call("GET", f"resources/{uuid}")
        return Resource.from_dict(data)

    async def list_resources(self, query: ResourceQuery | None = None) -> Page[ResourceSummary]:
        """List one page of resources."""
        query = query or ResourceQuery()
        data = await self.call("GET", "resources", params=query.to_params())
        page = Page.from_dict(data or {}, ResourceSummary.from_dict)
        logger.debug(f"[list_resources] page {page.page}: {len(page.items)}/{page.total}")
        return page

    # === Job operations ===

    async def create_job(self, name: str, meta: str | None = None) -> Job:
        """Create a job (it still has to be started)."""
        payload: dict[str, Any] = {"name": name}
        if meta is not None:
            payload["meta"] = meta
        data = await self.call(
            "POST",
            "jobs",
            payload,
            extra_headers={"Return-Detail": "true"},
        )
        job = Job.from_dict(data)
        logger.info(f"[create_job] {job.name} -> {job.uuid}")
        return job

    async def get_job(self, uuid: str) -> Job:
        """Get job details, including its current status."""
        data = await self.call("GET", f"jobs/{uuid}")
        return Job.from_dict(data)

    async def start_job(self, uuid: str, request: StartJobRequest) -> None:
        """Start a job on a resource.

        Args:
            uuid: Job uuid.
            request: Input resource, job type and algorithm parameters.
        """
        await self.call("POST", f"jobs/{uuid}/start", request.to_payload())
        logger.info(f"[start_job] {uuid} type={int(request.type)} resource={request.resource_uuid}")

    async def list_jobs(self, query: JobQuery | None = None) -> Page[Job]:
        """List one page of jobs."""
        query = query or JobQuery()
        data = await self.call("GET", "jobs", params=query.to_params())
        return Page.from_dict(data or {}, Job.from_dict)

    # === File operations ===

    async def list_files(self, query: FileQuery | None = None) -> Page[RemoteFile]:
        """List one page of files."""
        query = query or FileQuery()
        data = await self.call("GET", "files", params=query.to_params())
        return Page.from_dict(data or {}, RemoteFile.from_dict)

    async def get_file(self, uuid: str) -> RemoteFile:
        """Get file metadata, including its download URL."""
        data = await self.call("GET", f"files/{uuid}")
        return RemoteFile.from_dict(data)

    async def delete_file(self, uuid: str) -> None:
        """Delete a file."""
        await self.call("DELETE", f"files/{uuid}")
        logger.info(f"[delete_file] {uuid}")

    async def fetch_bytes(self, url: str) -> bytes:
        """Download the content behind a file URL.

        Download URLs are pre-signed, so no authentication headers are sent.

        Raises:
            APIError: On a 4xx status.
            TransportError: If the download could not be completed.
        """
        safe_url = redact_url(url)

        async def attempt() -> bytes:
            response = await self._http.get(url)
            if response.status_code >= 500:
                raise ServerUnavailableError(
                    f"Server error {response.status_code} downloading {safe_url}",
                    response.status_code,
                )
            if response.status_code >= 400:
                raise APIError(
                    f"Download failed with status {response.status_code}: {safe_url}",
                    response.status_code,
                )
            return response.content

        return await self._with_retry(attempt, True, f"GET {safe_url}")
