"""
Blob storage integration for video files.

Wraps one Azure Blob Storage container via the async SDK.
Includes mock mode for local development without credentials.
"""

from .client import (
    AzureBlobGateway,
    BlobGateway,
    BlobReadStream,
    BlobStorageConfig,
    MockBlobGateway,
    create_blob_gateway,
)
from .errors import BlobAccessError, BlobNotFoundError, StorageError, classify_error

__all__ = [
    "AzureBlobGateway",
    "BlobAccessError",
    "BlobGateway",
    "BlobNotFoundError",
    "BlobReadStream",
    "BlobStorageConfig",
    "MockBlobGateway",
    "StorageError",
    "classify_error",
    "create_blob_gateway",
]
