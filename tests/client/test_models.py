"""Tests for API request and response models."""

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from terraclient.client.api import APIError
from terraclient.client.models import (
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
from terraclient.core.types import JobStatus, JobType, ResourceType


class TestStsToken:
    """Tests for StsToken."""

    def test_from_dict(self, sts_token: StsToken) -> None:
        """Should map the service's field names."""
        assert sts_token.access_key_id == "AKID"
        assert sts_token.bucket == "terra-bucket"
        assert sts_token.region == "oss-cn-hangzhou"
        assert sts_token.callback_param == "cb-param"
        assert sts_token.expire_time == 3600

    def test_storage_key(self, sts_token: StsToken) -> None:
        """Should substitute the relative path into the store path."""
        assert sts_token.storage_key("DCIM/0001.JPG") == "users/42/DCIM/0001.JPG"

    def test_secrets_hidden(self, sts_token: StsToken) -> None:
        """Should keep STS secrets out of repr."""
        assert "sts-secret" not in repr(sts_token)
        assert "sts-session" not in repr(sts_token)


class TestResource:
    """Tests for resource models."""

    def test_summary_from_dict(self) -> None:
        """Should parse camelCase fields and timestamps."""
        summary = ResourceSummary.from_dict(
            {
                "uuid": "r1",
                "name": "site",
                "type": "job_output",
                "fileCount": 3,
                "totalSize": 1024,
                "scope": {"minLatitude": 22.5, "maxLongitude": 114.1},
                "createdAt": "2024-01-02T03:04:05Z",
            }
        )
        assert summary.type == ResourceType.JOB_OUTPUT
        assert summary.file_count == 3
        assert summary.scope.min_latitude == 22.5
        assert summary.scope.max_longitude == 114.1
        assert summary.created_at == datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)
        assert summary.updated_at is None

    def test_unknown_resource_type(self) -> None:
        """Should raise APIError for a resource type outside the known set."""
        with pytest.raises(APIError, match="resource type: 'panorama'"):
            ResourceSummary.from_dict({"uuid": "r1", "name": "site", "type": "panorama"})

    def test_detail_from_dict(self) -> None:
        """Should expose linked file and job uuids."""
        resource = Resource.from_dict(
            {
                "summary": {"uuid": "r1", "name": "site", "type": "map"},
                "fileUuids": ["f1", "f2"],
                "inputJobUuids": None,
                "outputJobUuids": ["j1"],
            }
        )
        assert resource.uuid == "r1"
        assert resource.file_uuids == ["f1", "f2"]
        assert resource.input_job_uuids == []
        assert resource.output_job_uuids == ["j1"]

    def test_remote_file(self) -> None:
        """Should parse file metadata and position."""
        remote = RemoteFile.from_dict(
            {
                "uuid": "f1",
                "name": "a.jpg",
                "size": 10,
                "url": "https://cdn.test/a.jpg",
                "position": {"latitude": 1.5, "longitude": 2.5},
            }
        )
        assert remote.url == "https://cdn.test/a.jpg"
        assert remote.position.latitude == 1.5
        assert remote.position.attitude == 0.0


class TestJob:
    """Tests for Job and StartJobRequest."""

    def test_created_job(self) -> None:
        """Should parse a job that has not been started."""
        job = Job.from_dict({"uuid": "j1", "name": "job-a", "status": 0})
        assert job.status == JobStatus.WAITING_FOR_START
        assert job.type is None
        assert not job.is_terminal

    def test_started_job(self) -> None:
        """Should parse progress and resource links."""
        job = Job.from_dict(
            {
                "uuid": "j1",
                "name": "job-a",
                "status": 6,
                "type": 15,
                "percentage": 1.0,
                "originResourceUuid": "r1",
                "outputResourceUuid": "r2",
                "completedAt": "2024-01-02T05:00:00+00:00",
            }
        )
        assert job.type == JobType.MODEL_3D
        assert job.output_resource_uuid == "r2"
        assert job.is_terminal
        assert job.completed_at is not None

    @pytest.mark.parametrize(
        ("field", "value", "match"),
        [
            ("status", 42, "job status: 42"),
            ("status", "done", "job status: 'done'"),
            ("type", 99, "job type: 99"),
        ],
    )
    def test_unknown_enum_value(self, field: str, value: object, match: str) -> None:
        """Should raise APIError naming the raw value the service sent."""
        data = {"uuid": "j1", "name": "job-a", "status": 1, field: value}
        with pytest.raises(APIError, match=match):
            Job.from_dict(data)

    def test_start_payload(self) -> None:
        """Should send parameters as a JSON string and omit an unset output."""
        parameters = {"parameter": {"output_CRS": "EPSG:4326"}, "predefine_AOI": None}
        payload = StartJobRequest(
            resource_uuid="r1", type=JobType.MAP_2D, parameters=parameters
        ).to_payload()

        assert payload["type"] == 14
        assert payload["resourceUuid"] == "r1"
        assert isinstance(payload["parameters"], str)
        assert json.loads(payload["parameters"]) == parameters
        assert "outputResourceUuid" not in payload

    def test_start_payload_merge_output(self) -> None:
        """Should include the output resource when merging into one."""
        payload = StartJobRequest(
            resource_uuid="r1", type=JobType.LIDAR, parameters={}, output_resource_uuid="r9"
        ).to_payload()
        assert payload["outputResourceUuid"] == "r9"


class TestPagination:
    """Tests for Page and PaginationCursor."""

    @pytest.mark.parametrize(
        ("page", "rows", "total", "expected"),
        [
            (1, 10, 25, 2),
            (2, 10, 25, 3),
            (3, 10, 25, None),
            (1, 10, 10, None),
            (1, 10, 0, None),
            (1, 0, 5, None),
        ],
    )
    def test_next_page(self, page: int, rows: int, total: int, expected: int | None) -> None:
        """Should request the next page only while records remain."""
        assert PaginationCursor(page=page, rows=rows, total=total).next_page() == expected

    def test_consumed_capped(self) -> None:
        """Should not count past the total."""
        assert PaginationCursor(page=3, rows=10, total=25).consumed == 25

    def test_page_from_dict(self) -> None:
        """Should decode items with the given factory."""
        page = Page.from_dict(
            {"list": [{"uuid": "j1", "name": "a", "status": 1}], "page": 1, "rows": 10, "total": 1},
            Job.from_dict,
        )
        assert [j.uuid for j in page.items] == ["j1"]
        assert page.cursor == PaginationCursor(page=1, rows=10, total=1)

    def test_empty_page(self) -> None:
        """Should tolerate a null list."""
        page = Page.from_dict({"list": None, "total": 0}, Job.from_dict)
        assert page.items == []


class TestQueries:
    """Tests for list query parameters."""

    def test_resource_query_defaults(self) -> None:
        """Should send only rows by default."""
        assert ResourceQuery().to_params() == {"rows": "10"}

    def test_resource_query(self) -> None:
        """Should join uuids and use the enum value for type."""
        params = ResourceQuery(
            page=2, search="site", uuids=["a", "b"], type=ResourceType.MAP
        ).to_params()
        assert params == {"rows": "10", "page": "2", "search": "site", "uuids": "a,b", "type": "map"}

    def test_file_query(self) -> None:
        """Should use the service's parameter names and boolean spelling."""
        params = FileQuery(need_url=True, order_asc=False, resource_uuid="r1").to_params()
        assert params == {"rows": "10", "needURL": "true", "resourceUuid": "r1", "orderAsc": "false"}

    def test_job_query(self) -> None:
        """Should send the job type as its numeric code."""
        params = JobQuery(rows=None, type=JobType.LIDAR, output_resource_uuid="r2").to_params()
        assert params == {"type": "13", "outputResourceUuid": "r2"}
