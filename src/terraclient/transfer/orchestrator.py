"""Batched concurrent transfers between local disk, object storage and the API.

This module provides:
- TransferItem: A local file to upload; its content tag is set exactly once
- UploadOutcome / DownloadOutcome: Per-item result of a transfer
- BatchResult / TransferReport: Results grouped by batch, plus unstarted work
- TransferOrchestrator: Upload, callback registration and download drivers

Architecture:
    Work is drained from the front of a queue in batches. All items of a
    batch run concurrently (asyncio.gather); the next batch starts only
    after every item of the current one has finished. A failing item never
    cancels its siblings: its error is recorded in its outcome.

    With stop_on_error=True the orchestrator raises PartialTransferError
    after the first batch containing a failure. The attached report holds
    the finished batches and the items that were never started, so a
    caller can resume with report.remaining.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path
from typing import TYPE_CHECKING, Any, Generic, Protocol, TypeVar

from terraclient.client.models import CallbackFile
from terraclient.transfer.batching import drain_batches
from terraclient.transfer.scanner import scan_eligible
from terraclient.transfer.storage import ObjectStorage, S3ObjectStorage

if TYPE_CHECKING:
    from terraclient.client.api import HTTPClient
    from terraclient.client.models import RemoteFile, StsToken
    from terraclient.core.config import TransferLimits

logger = logging.getLogger(__name__)


class TransferError(Exception):
    """Base exception for transfer failures."""


class TransferItemError(TransferError):
    """A transfer item's content tag is missing or already set."""


class PartialTransferError(TransferError):
    """One or more items of a batch failed.

    Attributes:
        report: Finished batches and the items that were never started.
        batch_index: Index of the batch that contained the failure.
    """

    def __init__(self, report: TransferReport[Any], batch_index: int) -> None:
        failed = report.batches[batch_index].failures
        super().__init__(
            f"{len(failed)} of {len(report.batches[batch_index].outcomes)} items "
            f"failed in batch {batch_index + 1}; "
            f"{len(report.remaining)} items not started"
        )
        self.report = report
        self.batch_index = batch_index


@dataclass(eq=False)
class TransferItem:
    """A local file scheduled for upload.

    Attributes:
        relative_path: POSIX path relative to the scanned root.
        local_path: Absolute path on disk.
    """

    relative_path: str
    local_path: Path
    _content_tag: str | None = field(default=None, init=False, repr=False)

    @cached_property
    def size(self) -> int:
        """File size in bytes, read from disk on first access."""
        return self.local_path.stat().st_size

    @property
    def content_tag(self) -> str | None:
        return self._content_tag

    @property
    def is_uploaded(self) -> bool:
        return self._content_tag is not None

    def assign_content_tag(self, tag: str) -> None:
        """Record the tag returned by storage. Only allowed once."""
        if not tag:
            raise TransferItemError(f"Empty content tag for {self.relative_path}")
        if self._content_tag is not None:
            raise TransferItemError(f"Content tag already set for {self.relative_path}")
        self._content_tag = tag

    def to_callback_file(self) -> CallbackFile:
        """Describe this item for the upload callback."""
        if self._content_tag is None:
            raise TransferItemError(f"{self.relative_path} has not been uploaded")
        return CallbackFile(
            name=self.relative_path,
            etag=self._content_tag,
            checksum=self._content_tag,
        )


class Outcome(Protocol):
    @property
    def ok(self) -> bool: ...


OutcomeT = TypeVar("OutcomeT", bound=Outcome)


@dataclass
class UploadOutcome:
    """Result of uploading one item."""

    item: TransferItem
    storage_key: str
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class DownloadOutcome:
    """Result of downloading one file."""

    file_uuid: str
    name: str | None = None
    path: Path | None = None
    size: int = 0
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchResult(Generic[OutcomeT]):
    """Outcomes of one concurrent batch, in submission order."""

    index: int
    outcomes: list[OutcomeT]

    @property
    def failures(self) -> list[OutcomeT]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass
class TransferReport(Generic[OutcomeT]):
    """Results of a batched transfer.

    Attributes:
        batches: Finished batches in execution order.
        remaining: Items (or file uuids) never started.
    """

    batches: list[BatchResult[OutcomeT]] = field(default_factory=list)
    remaining: list[Any] = field(default_factory=list)

    @property
    def outcomes(self) -> list[OutcomeT]:
        return [o for batch in self.batches for o in batch.outcomes]

    @property
    def succeeded(self) -> list[OutcomeT]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[OutcomeT]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def ok(self) -> bool:
        return not self.failed and not self.remaining


def resolve_destination(root: Path, name: str) -> Path:
    """Resolve a server-provided file name below root.

    Raises:
        TransferError: If the name would resolve outside root.
    """
    target = (root / name).resolve()
    if target == root or not target.is_relative_to(root):
        raise TransferError(f"Refusing to write outside {root}: {name!r}")
    return target


def write_file_atomic(path: Path, data: bytes) -> None:
    """Write bytes via a temporary file in the same directory, then rename.

    Parent directories are created as needed. The file is created with
    the process umask applied, like any other new file. No partial file is
    left at path if the write fails.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        with open(tmp_path, "wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except Exception:
        with contextlib.suppress(OSError):
            tmp_path.unlink()
        raise


class TransferOrchestrator:
    """Drives bounded-concurrency uploads, registrations and downloads.

    Usage:
        orchestrator = TransferOrchestrator(client)
        token = await client.obtain_token()
        report = await orchestrator.upload_directory(token, "images/")
        files = await orchestrator.register_uploads(
            token.callback_param, uploaded_items(report), resource.uuid
        )
    """

    def __init__(self, client: HTTPClient, limits: TransferLimits | None = None) -> None:
        """Initialize the orchestrator.

        Args:
            client: API client shared by all transfers.
            limits: Batch sizes. Defaults to the client's configured limits.
        """
        self._client = client
        self._limits = limits or client.config.limits

    @property
    def limits(self) -> TransferLimits:
        return self._limits

    # === Uploads ===

    async def upload_directory(
        self,
        token: StsToken,
        image_dir: str | Path,
        storage: ObjectStorage | None = None,
        stop_on_error: bool = True,
    ) -> TransferReport[UploadOutcome]:
        """Upload every eligible image below a directory.

        Args:
            token: STS token from obtain_token.
            image_dir: Local root directory.
            storage: Object storage to upload to. Defaults to an S3 client
                built from the token.
            stop_on_error: Raise after the first batch with a failure.

        Returns:
            Upload report; ``uploaded_items(report)`` feeds register_uploads.

        Raises:
            PartialTransferError: If an item failed and stop_on_error is set.
            OSError: If the directory cannot be scanned.
        """
        root = Path(image_dir).resolve()
        paths = await asyncio.to_thread(scan_eligible, root)
        logger.info(f"Found {len(paths)} eligible files in {root}")
        items = [TransferItem(relative_path=p, local_path=root / p) for p in paths]
        return await self.upload_items(token, items, storage=storage, stop_on_error=stop_on_error)

    async def upload_items(
        self,
        token: StsToken,
        items: Iterable[TransferItem],
        storage: ObjectStorage | None = None,
        stop_on_error: bool = True,
    ) -> TransferReport[UploadOutcome]:
        """Upload items in sequential batches of concurrent uploads.

        Also used to resume from ``PartialTransferError.report.remaining``.
        """
        if storage is None:
            storage = S3ObjectStorage.from_token(
                token, self._client.config.uses_regional_storage_endpoint
            )

        queue: deque[TransferItem] = deque(items)
        total = len(queue)
        report: TransferReport[UploadOutcome] = TransferReport()

        for index, batch in enumerate(drain_batches(queue, self._limits.upload_batch_size)):
            outcomes = await asyncio.gather(
                *(self._upload_one(storage, token, item) for item in batch)
            )
            result = BatchResult(index=index, outcomes=list(outcomes))
            report.batches.append(result)
            logger.info(
                f"Upload batch {index + 1}: {len(batch) - len(result.failures)}/{len(batch)} "
                f"succeeded ({total - len(queue)}/{total} processed)"
            )
            if result.failures and stop_on_error:
                report.remaining = list(queue)
                raise PartialTransferError(report, index)

        return report

    async def _upload_one(
        self,
        storage: ObjectStorage,
        token: StsToken,
        item: TransferItem,
    ) -> UploadOutcome:
        key = token.storage_key(item.relative_path)
        try:
            if item.is_uploaded:
                raise TransferItemError(f"{item.relative_path} was already uploaded")
            tag = await asyncio.to_thread(storage.put_object, token.bucket, key, item.local_path)
            item.assign_content_tag(tag)
        except Exception as e:
            logger.error(f"Upload failed for {item.relative_path}: {e}")
            return UploadOutcome(item=item, storage_key=key, error=e)
        return UploadOutcome(item=item, storage_key=key)

    # === Callback registration ===

    async def register_uploads(
        self,
        callback_param: str,
        items: Sequence[TransferItem],
        resource_uuid: str,
    ) -> list[RemoteFile]:
        """Link uploaded items to a resource, one batch per request.

        Rounds run sequentially, never concurrently; results are returned in
        submission order.

        Raises:
            TransferItemError: If any item has no content tag (checked
                before the first request).
            RemoteError: If a round is rejected. Earlier rounds stay registered.
        """
        missing = [item.relative_path for item in items if not item.is_uploaded]
        if missing:
            raise TransferItemError(
                f"{len(missing)} items have no content tag, e.g. {missing[0]}"
            )

        queue: deque[TransferItem] = deque(items)
        registered: list[RemoteFile] = []
        for index, batch in enumerate(drain_batches(queue, self._limits.callback_batch_size)):
            files = await self._client.upload_callback(
                callback_param,
                [item.to_callback_file() for item in batch],
                resource_uuid,
            )
            registered.extend(files)
            logger.info(f"Registration round {index + 1}: {len(files)} files")
        return registered

    # === Downloads ===

    async def download_resource(
        self,
        resource_uuid: str,
        dest_dir: str | Path,
        stop_on_error: bool = True,
    ) -> TransferReport[DownloadOutcome]:
        """Download every file of a resource into dest_dir."""
        resource = await self._client.get_resource(resource_uuid)
        logger.info(f"Downloading {len(resource.file_uuids)} files of resource {resource_uuid}")
        return await self.download_files(resource.file_uuids, dest_dir, stop_on_error=stop_on_error)

    async def download_files(
        self,
        file_uuids: Iterable[str],
        dest_dir: str | Path,
        stop_on_error: bool = True,
    ) -> TransferReport[DownloadOutcome]:
        """Download files in sequential batches of concurrent downloads.

        Each file is written to ``dest_dir / <file name>``; a failed write
        affects only its own file.

        Raises:
            PartialTransferError: If an item failed and stop_on_error is set.
        """
        root = Path(dest_dir).resolve()
        await asyncio.to_thread(root.mkdir, parents=True, exist_ok=True)

        queue: deque[str] = deque(file_uuids)
        report: TransferReport[DownloadOutcome] = TransferReport()

        for index, batch in enumerate(drain_batches(queue, self._limits.download_batch_size)):
            outcomes = await asyncio.gather(*(self._download_one(root, uuid) for uuid in batch))
            result = BatchResult(index=index, outcomes=list(outcomes))
            report.batches.append(result)
            logger.info(
                f"Download batch {index + 1}: "
                f"{len(batch) - len(result.failures)}/{len(batch)} succeeded"
            )
            if result.failures and stop_on_error:
                report.remaining = list(queue)
                raise PartialTransferError(report, index)

        logger.info(f"{len(report.succeeded)} files downloaded to {root}")
        return report

    async def _download_one(self, root: Path, file_uuid: str) -> DownloadOutcome:
        name: str | None = None
        try:
            info = await self._client.get_file(file_uuid)
            name = info.name
            target = resolve_destination(root, info.name)
            data = await self._client.fetch_bytes(info.url)
            await asyncio.to_thread(write_file_atomic, target, data)
        except Exception as e:
            logger.error(f"Download failed for {name or file_uuid}: {e}")
            return DownloadOutcome(file_uuid=file_uuid, name=name, error=e)
        logger.info(f"[download] {info.name} done")
        return DownloadOutcome(file_uuid=file_uuid, name=info.name, path=target, size=len(data))


def uploaded_items(report: TransferReport[UploadOutcome]) -> list[TransferItem]:
    """Items of an upload report that received a content tag, in order."""
    return [o.item for o in report.outcomes if o.ok]
