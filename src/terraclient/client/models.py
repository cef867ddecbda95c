"""Typed models for reconstruction API requests and responses.

This module provides:
- Response models decoded from the service envelope (StsToken, Resource, Job, ...)
- Page / PaginationCursor: Decoded list responses
- ResourceQuery / FileQuery / JobQuery: Structured list filters
- StartJobRequest: Payload for starting a job
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, TypeVar

from terraclient.core.types import JobStatus, JobType, ResourceType

T = TypeVar("T")
E = TypeVar("E")

FILE_NAME_PLACEHOLDER = "{fileName}"


def _parse_time(value: str | None) -> datetime | None:
    """Parse an RFC 3339 timestamp, tolerating missing values."""
    if not value:
        return None
    return datetime.fromisoformat(value)


def _parse_enum(enum_cls: Callable[[Any], E], value: Any, what: str) -> E:
    """Convert a raw response value, raising APIError for unknown members."""
    from terraclient.client.api import APIError

    try:
        return enum_cls(value)
    except ValueError as e:
        raise APIError(f"Unknown {what}: {value!r}") from e


def _query_value(value: Any) -> str:
    """Coerce a query value to its string form."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    if isinstance(value, (JobType, ResourceType)):
        return str(value.value)
    return str(value)


def _build_params(fields: Mapping[str, Any]) -> dict[str, str]:
    return {key: _query_value(value) for key, value in fields.items() if value is not None}


# === Upload token ===


@dataclass
class StsToken:
    """Temporary object storage credentials returned by obtain_token."""

    access_key_id: str
    secret_access_key: str = field(repr=False)
    session_token: str = field(repr=False)
    region: str
    bucket: str
    cloud_name: str
    callback_param: str
    store_path: str
    expire_time: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StsToken:
        """Create from API response dictionary."""
        return cls(
            access_key_id=data["accessKeyID"],
            secret_access_key=data["secretAccessKey"],
            session_token=data["sessionToken"],
            region=data["region"],
            bucket=data["cloudBucketName"],
            cloud_name=data.get("cloudName", ""),
            callback_param=data["callbackParam"],
            store_path=data["storePath"],
            expire_time=data.get("expireTime", 0),
        )

    def storage_key(self, relative_path: str) -> str:
        """Return the object key for a file, substituting it into store_path."""
        return self.store_path.replace(FILE_NAME_PLACEHOLDER, relative_path)


# === Resources and files ===


@dataclass
class GeoScope:
    """Bounding box of a resource."""

    min_latitude: float = 0.0
    min_longitude: float = 0.0
    max_latitude: float = 0.0
    max_longitude: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> GeoScope:
        data = data or {}
        return cls(
            min_latitude=data.get("minLatitude", 0.0),
            min_longitude=data.get("minLongitude", 0.0),
            max_latitude=data.get("maxLatitude", 0.0),
            max_longitude=data.get("maxLongitude", 0.0),
        )


@dataclass
class Position:
    """Capture position attached to a file."""

    latitude: float = 0.0
    longitude: float = 0.0
    attitude: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Position:
        data = data or {}
        return cls(
            latitude=data.get("latitude", 0.0),
            longitude=data.get("longitude", 0.0),
            attitude=data.get("attitude", 0.0),
        )


@dataclass
class ResourceSummary:
    """Resource metadata as returned by create/list calls."""

    uuid: str
    name: str
    type: ResourceType
    meta: str = ""
    file_count: int = 0
    total_size: int = 0
    revisable: bool = False
    upload_used_time: float = 0.0
    download_used_time: float = 0.0
    scope: GeoScope = field(default_factory=GeoScope)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResourceSummary:
        """Create from API response dictionary."""
        return cls(
            uuid=data["uuid"],
            name=data["name"],
            type=_parse_enum(
                ResourceType, data.get("type", ResourceType.MAP.value), "resource type"
            ),
            meta=data.get("meta", ""),
            file_count=data.get("fileCount", 0),
            total_size=data.get("totalSize", 0),
            revisable=data.get("revisable", False),
            upload_used_time=data.get("uploadUsedTime", 0.0),
            download_used_time=data.get("downloadUsedTime", 0.0),
            scope=GeoScope.from_dict(data.get("scope")),
            created_at=_parse_time(data.get("createdAt")),
            updated_at=_parse_time(data.get("updatedAt")),
        )


@dataclass
class Resource:
    """Resource detail with linked file and job uuids."""

    summary: ResourceSummary
    file_uuids: list[str]
    input_job_uuids: list[str] = field(default_factory=list)
    output_job_uuids: list[str] = field(default_factory=list)

    @property
    def uuid(self) -> str:
        return self.summary.uuid

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Resource:
        """Create from API response dictionary."""
        return cls(
            summary=ResourceSummary.from_dict(data["summary"]),
            file_uuids=list(data.get("fileUuids") or []),
            input_job_uuids=list(data.get("inputJobUuids") or []),
            output_job_uuids=list(data.get("outputJobUuids") or []),
        )


@dataclass
class RemoteFile:
    """File stored by the service."""

    uuid: str
    name: str
    size: int = 0
    checksum: str = ""
    url: str = ""
    meta: str = ""
    position: Position = field(default_factory=Position)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteFile:
        """Create from API response dictionary."""
        return cls(
            uuid=data["uuid"],
            name=data["name"],
            size=data.get("size", 0),
            checksum=data.get("checksum", ""),
            url=data.get("url", ""),
            meta=data.get("meta", ""),
            position=Position.from_dict(data.get("position")),
            created_at=_parse_time(data.get("createdAt")),
            updated_at=_parse_time(data.get("updatedAt")),
        )


@dataclass(frozen=True)
class CallbackFile:
    """One uploaded file reported to the upload callback."""

    name: str
    etag: str
    checksum: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "etag": self.etag, "checksum": self.checksum}


# === Jobs ===


@dataclass
class Job:
    """Reconstruction job.

    Fields other than uuid, name and status are only returned once the job
    has been started.
    """

    uuid: str
    name: str
    status: JobStatus
    type: JobType | None = None
    meta: str = ""
    message: str | None = None
    parameters: str | None = None
    origin_resource_uuid: str | None = None
    output_resource_uuid: str | None = None
    percentage: float | None = None
    remain_seconds: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Job:
        """Create from API response dictionary."""
        job_type = data.get("type")
        return cls(
            uuid=data["uuid"],
            name=data.get("name", ""),
            status=_parse_enum(
                JobStatus, data.get("status", JobStatus.WAITING_FOR_START), "job status"
            ),
            type=_parse_enum(JobType, job_type, "job type") if job_type else None,
            meta=data.get("meta", ""),
            message=data.get("message"),
            parameters=data.get("parameters"),
            origin_resource_uuid=data.get("originResourceUuid"),
            output_resource_uuid=data.get("outputResourceUuid"),
            percentage=data.get("percentage"),
            remain_seconds=data.get("remainSeconds"),
            created_at=_parse_time(data.get("createdAt")),
            updated_at=_parse_time(data.get("updatedAt")),
            started_at=_parse_time(data.get("startedAt")),
            completed_at=_parse_time(data.get("completedAt")),
        )


@dataclass
class StartJobRequest:
    """Payload for starting a job.

    Attributes:
        resource_uuid: Input resource.
        type: Reconstruction type.
        parameters: Algorithm parameters (``parameter``, ``predefine_AOI``,
            ``export_parameter``). Passed through untouched.
        output_resource_uuid: Existing resource to merge results into.
    """

    resource_uuid: str
    type: JobType
    parameters: Mapping[str, Any]
    output_resource_uuid: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Build the request body; parameters travel as a JSON string."""
        payload: dict[str, Any] = {
            "parameters": json.dumps(self.parameters, separators=(",", ":"), ensure_ascii=False),
            "resourceUuid": self.resource_uuid,
            "type": int(self.type),
        }
        if self.output_resource_uuid:
            payload["outputResourceUuid"] = self.output_resource_uuid
        return payload


# === Pagination ===


@dataclass(frozen=True)
class PaginationCursor:
    """Position within a paginated listing (pages start at 1)."""

    page: int
    rows: int
    total: int

    @property
    def consumed(self) -> int:
        """Number of records on this page and the pages before it."""
        return min(self.page * self.rows, self.total)

    @property
    def has_more(self) -> bool:
        return self.rows > 0 and self.consumed < self.total

    def next_page(self) -> int | None:
        """Page number to request next, or None when all pages are read."""
        return self.page + 1 if self.has_more else None


@dataclass
class Page(Generic[T]):
    """One page of a list response."""

    items: list[T]
    page: int
    rows: int
    total: int

    @property
    def cursor(self) -> PaginationCursor:
        return PaginationCursor(page=self.page, rows=self.rows, total=self.total)

    @classmethod
    def from_dict(cls, data: dict[str, Any], item_factory: Callable[[dict[str, Any]], T]) -> Page[T]:
        """Decode a ``{list, page, rows, total}`` envelope."""
        return cls(
            items=[item_factory(item) for item in data.get("list") or []],
            page=data.get("page", 1),
            rows=data.get("rows", 0),
            total=data.get("total", 0),
        )


# === Queries ===


@dataclass
class ResourceQuery:
    """Filters for listing resources."""

    rows: int | None = 10
    page: int | None = None
    search: str | None = None
    uuids: list[str] | None = None
    type: ResourceType | None = None

    def to_params(self) -> dict[str, str]:
        return _build_params(
            {
                "rows": self.rows,
                "page": self.page,
                "search": self.search,
                "uuids": self.uuids,
                "type": self.type,
            }
        )


@dataclass
class FileQuery:
    """Filters for listing files.

    ``uuids`` accepts up to 1000 file uuids. ``order_asc`` flips the default
    descending created-at order.
    """

    rows: int | None = 10
    page: int | None = None
    search: str | None = None
    need_url: bool | None = None
    name: str | None = None
    uuids: list[str] | None = None
    resource_uuid: str | None = None
    order_asc: bool | None = None

    def to_params(self) -> dict[str, str]:
        return _build_params(
            {
                "rows": self.rows,
                "page": self.page,
                "search": self.search,
                "needURL": self.need_url,
                "name": self.name,
                "uuids": self.uuids,
                "resourceUuid": self.resource_uuid,
                "orderAsc": self.order_asc,
            }
        )


@dataclass
class JobQuery:
    """Filters for listing jobs."""

    rows: int | None = 10
    page: int | None = None
    search: str | None = None
    uuids: list[str] | None = None
    type: JobType | None = None
    origin_resource_uuid: str | None = None
    output_resource_uuid: str | None = None

    def to_params(self) -> dict[str, str]:
        return _build_params(
            {
                "rows": self.rows,
                "page": self.page,
                "search": self.search,
                "uuids": self.uuids,
                "type": self.type,
                "originResourceUuid": self.origin_resource_uuid,
                "outputResourceUuid": self.output_resource_uuid,
            }
        )
