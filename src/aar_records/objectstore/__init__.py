"""S3-compatible object storage for report attachments."""

from aar_records.objectstore.client import (
    DownloadedObject,
    ObjectMetadata,
    ObjectStorageClient,
    ObjectStorageError,
)

__all__ = [
    "DownloadedObject",
    "ObjectMetadata",
    "ObjectStorageClient",
    "ObjectStorageError",
]
