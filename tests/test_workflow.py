"""Tests for the end-to-end reconstruction workflow."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from terraclient.client.models import (
    CallbackFile,
    Job,
    RemoteFile,
    Resource,
    ResourceSummary,
    StartJobRequest,
    StsToken,
)
from terraclient.core.config import TransferLimits
from terraclient.core.types import JobStatus, JobType, ResourceType
from terraclient.jobs.poller import JobError, JobFailedError, JobPoller
from terraclient.transfer.orchestrator import PartialTransferError, TransferOrchestrator
from terraclient.workflow import ReconstructionWorkflow


class MemoryStorage:
    """Object storage double keeping uploaded keys."""

    def __init__(self, fail: str | None = None) -> None:
        self.keys: list[str] = []
        self.fail = fail

    def put_object(self, bucket: str, key: str, path: Path) -> str:
        if path.name == self.fail:
            raise OSError(f"cannot read {path}")
        self.keys.append(key)
        return f'"{path.name}-tag"'


def make_client(sts_token: StsToken, final_status: JobStatus, output: str | None = "r-out") -> MagicMock:
    client = MagicMock()
    client.obtain_token = AsyncMock(return_value=sts_token)
    client.create_resource = AsyncMock(
        return_value=ResourceSummary(uuid="r-in", name="site", type=ResourceType.MAP)
    )

    async def upload_callback(
        callback_param: str, files: list[CallbackFile], resource_uuid: str
    ) -> list[RemoteFile]:
        return [RemoteFile(uuid=f"u-{f.name}", name=f.name) for f in files]

    client.upload_callback = AsyncMock(side_effect=upload_callback)
    client.create_job = AsyncMock(
        return_value=Job(uuid="j1", name="job-site", status=JobStatus.WAITING_FOR_START)
    )
    client.start_job = AsyncMock(return_value=None)
    client.get_job = AsyncMock(
        side_effect=[
            Job(uuid="j1", name="job-site", status=JobStatus.EXECUTING, percentage=0.5),
            Job(uuid="j1", name="job-site", status=final_status, output_resource_uuid=output),
        ]
    )
    client.get_resource = AsyncMock(
        return_value=Resource(
            summary=ResourceSummary(uuid="r-out", name="out", type=ResourceType.JOB_OUTPUT),
            file_uuids=["o1"],
        )
    )
    client.get_file = AsyncMock(
        return_value=RemoteFile(uuid="o1", name="result.tif", url="https://cdn.test/o1")
    )
    client.fetch_bytes = AsyncMock(return_value=b"tif-bytes")
    return client


def make_workflow(client: MagicMock, storage: MemoryStorage) -> ReconstructionWorkflow:
    return ReconstructionWorkflow(
        client,
        orchestrator=TransferOrchestrator(client, limits=TransferLimits()),
        poller=JobPoller(client.get_job, sleep=AsyncMock()),
        storage=storage,
    )


def make_images(root: Path) -> None:
    (root / "DCIM").mkdir(parents=True)
    for name in ("DCIM/0001.JPG", "DCIM/0002.JPG", "notes.txt"):
        (root / name).write_bytes(b"data")


class TestReconstructionWorkflow:
    """Tests for ReconstructionWorkflow."""

    @pytest.mark.asyncio
    async def test_run(self, tmp_path: Path, sts_token: StsToken) -> None:
        """Should upload, register, run the job and download the output."""
        make_images(tmp_path / "images")
        client = make_client(sts_token, JobStatus.FINISHED)
        storage = MemoryStorage()

        result = await make_workflow(client, storage).run(
            tmp_path / "images",
            tmp_path / "output",
            name="site",
            job_type=JobType.MAP_2D,
            parameters={"parameter": {"output_CRS": "EPSG:4326"}},
        )

        assert sorted(storage.keys) == ["users/42/DCIM/0001.JPG", "users/42/DCIM/0002.JPG"]
        callback = client.upload_callback.call_args
        assert callback.args[0] == "cb-param"
        assert [f.name for f in callback.args[1]] == ["DCIM/0001.JPG", "DCIM/0002.JPG"]
        assert callback.args[2] == "r-in"

        client.create_job.assert_awaited_once_with("job-site")
        job_uuid, request = client.start_job.call_args.args
        assert job_uuid == "j1"
        assert isinstance(request, StartJobRequest)
        assert request.resource_uuid == "r-in"
        assert json.loads(request.to_payload()["parameters"]) == {"parameter": {"output_CRS": "EPSG:4326"}}

        assert result.job.status == JobStatus.FINISHED
        assert len(result.uploaded.files) == 2
        assert (tmp_path / "output" / "result.tif").read_bytes() == b"tif-bytes"
        client.get_resource.assert_awaited_once_with("r-out")

    @pytest.mark.asyncio
    async def test_failed_job(self, tmp_path: Path, sts_token: StsToken) -> None:
        """Should raise and skip downloads when the job fails."""
        make_images(tmp_path / "images")
        client = make_client(sts_token, JobStatus.FAILED)

        with pytest.raises(JobFailedError):
            await make_workflow(client, MemoryStorage()).run(
                tmp_path / "images", tmp_path / "output", "site", JobType.MODEL_3D, {}
            )

        client.get_resource.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_output(self, tmp_path: Path, sts_token: StsToken) -> None:
        """Should raise when a finished job has no output resource."""
        make_images(tmp_path / "images")
        client = make_client(sts_token, JobStatus.FINISHED, output=None)

        with pytest.raises(JobError, match="output resource"):
            await make_workflow(client, MemoryStorage()).run(
                tmp_path / "images", tmp_path / "output", "site", JobType.LIDAR, {}
            )

    @pytest.mark.asyncio
    async def test_upload_failure_creates_no_resource(
        self, tmp_path: Path, sts_token: StsToken
    ) -> None:
        """Should stop before creating a resource when an upload fails."""
        make_images(tmp_path / "images")
        client = make_client(sts_token, JobStatus.FINISHED)

        with pytest.raises(PartialTransferError):
            await make_workflow(client, MemoryStorage(fail="0002.JPG")).upload_images(
                tmp_path / "images", "site"
            )

        client.create_resource.assert_not_called()
        client.upload_callback.assert_not_called()
