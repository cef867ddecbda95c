"""End-to-end reconstruction workflow.

This module provides:
- ReconstructionWorkflow: Upload images, run a job and download its output
- UploadedResource / ReconstructionResult: What each stage returns

Flow:
    obtain_token -> upload directory -> create resource -> register uploads
    -> create job -> start job -> poll until terminal -> download output
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from terraclient.client.models import StartJobRequest
from terraclient.jobs.poller import JobError, JobPoller
from terraclient.transfer.orchestrator import (
    DownloadOutcome,
    TransferOrchestrator,
    TransferReport,
    UploadOutcome,
    uploaded_items,
)

if TYPE_CHECKING:
    from terraclient.client.api import HTTPClient
    from terraclient.client.models import Job, RemoteFile, ResourceSummary
    from terraclient.core.types import JobType
    from terraclient.transfer.storage import ObjectStorage

logger = logging.getLogger(__name__)


@dataclass
class UploadedResource:
    """A resource holding freshly uploaded images."""

    resource: ResourceSummary
    files: list[RemoteFile]
    report: TransferReport[UploadOutcome]


@dataclass
class ReconstructionResult:
    """A finished job and the files downloaded from its output resource."""

    job: Job
    uploaded: UploadedResource
    downloads: TransferReport[DownloadOutcome]


class ReconstructionWorkflow:
    """High-level operations composed from the client, orchestrator and poller.

    Usage:
        async with HTTPClient.from_env() as client:
            workflow = ReconstructionWorkflow(client)
            result = await workflow.run(
                "images/", "output/", name="site-a",
                job_type=JobType.MODEL_3D,
                parameters={"parameter": {"generate_obj": True}},
            )
    """

    def __init__(
        self,
        client: HTTPClient,
        orchestrator: TransferOrchestrator | None = None,
        poller: JobPoller | None = None,
        storage: ObjectStorage | None = None,
    ) -> None:
        """Initialize the workflow.

        Args:
            client: API client.
            orchestrator: Transfer orchestrator. Defaults to one using the
                client's configured limits.
            poller: Job poller. Defaults to polling client.get_job at the
                configured interval.
            storage: Object storage for uploads. Defaults to an S3 client
                built from each STS token.
        """
        self._client = client
        self._orchestrator = orchestrator or TransferOrchestrator(client)
        self._poller = poller or JobPoller(client.get_job, interval=client.config.poll_interval)
        self._storage = storage

    async def upload_images(
        self,
        image_dir: str | Path,
        resource_name: str,
        meta: str | None = None,
    ) -> UploadedResource:
        """Upload a directory of images into a new resource.

        Raises:
            PartialTransferError: If any upload failed. No resource is created.
            RemoteError: If the service rejects a call.
        """
        token = await self._client.obtain_token()
        report = await self._orchestrator.upload_directory(token, image_dir, storage=self._storage)
        resource = await self._client.create_resource(resource_name, meta=meta)
        files = await self._orchestrator.register_uploads(
            token.callback_param,
            uploaded_items(report),
            resource.uuid,
        )
        logger.info(f"Resource {resource.uuid} holds {len(files)} uploaded files")
        return UploadedResource(resource=resource, files=files, report=report)

    async def run(
        self,
        image_dir: str | Path,
        output_dir: str | Path,
        name: str,
        job_type: JobType,
        parameters: Mapping[str, Any],
    ) -> ReconstructionResult:
        """Upload images, run a reconstruction job and download the result.

        Args:
            image_dir: Directory of input images.
            output_dir: Directory receiving the job output.
            name: Name used for the resource and the job.
            job_type: Reconstruction type.
            parameters: Algorithm parameters, passed through untouched.

        Returns:
            The finished job, the upload summary and the download report.

        Raises:
            JobFailedError: If the job failed.
            JobStoppedError: If the job was stopped.
            PartialTransferError: If an upload or download failed.
        """
        uploaded = await self.upload_images(image_dir, name)
        job = await self._client.create_job(f"job-{name}")
        await self._client.start_job(
            job.uuid,
            StartJobRequest(
                resource_uuid=uploaded.resource.uuid,
                type=job_type,
                parameters=parameters,
            ),
        )

        finished = await self._poller.wait(job.uuid)
        if not finished.output_resource_uuid:
            raise JobError(f"Job {finished.uuid} finished without an output resource", finished)

        downloads = await self._orchestrator.download_resource(
            finished.output_resource_uuid, output_dir
        )
        return ReconstructionResult(job=finished, uploaded=uploaded, downloads=downloads)
