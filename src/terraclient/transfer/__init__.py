"""Transfer module - Directory scanning and batched uploads/downloads.

Components:
- **scanner**: Deterministic, cycle-safe directory scan and image filter
- **batching**: Destructive front-of-queue batching
- **storage**: boto3 object storage adapter
- **orchestrator**: Sequential batches of concurrent transfers
"""

from terraclient.transfer.batching import drain_batches, split_batches, take_batch
from terraclient.transfer.orchestrator import (
    BatchResult,
    DownloadOutcome,
    PartialTransferError,
    TransferError,
    TransferItem,
    TransferItemError,
    TransferOrchestrator,
    TransferReport,
    UploadOutcome,
    uploaded_items,
)
from terraclient.transfer.scanner import (
    ELIGIBLE_EXTENSIONS,
    is_eligible,
    scan_directory,
    scan_eligible,
)
from terraclient.transfer.storage import (
    ObjectStorage,
    S3ObjectStorage,
    StorageError,
    storage_client_kwargs,
)

__all__ = [
    # Batching
    "drain_batches",
    "split_batches",
    "take_batch",
    # Orchestrator
    "BatchResult",
    "DownloadOutcome",
    "PartialTransferError",
    "TransferError",
    "TransferItem",
    "TransferItemError",
    "TransferOrchestrator",
    "TransferReport",
    "UploadOutcome",
    "uploaded_items",
    # Scanner
    "ELIGIBLE_EXTENSIONS",
    "is_eligible",
    "scan_directory",
    "scan_eligible",
    # Storage
    "ObjectStorage",
    "S3ObjectStorage",
    "StorageError",
    "storage_client_kwargs",
]
