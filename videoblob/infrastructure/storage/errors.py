"""
Storage exceptions and Azure error classification.

Wrapper exceptions always chain the SDK error (``raise ... from e``) so
the vendor detail is still reachable through ``__cause__``.
"""

import asyncio
from typing import Optional

from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ResourceExistsError,
    ResourceModifiedError,
    ResourceNotFoundError,
    ServiceRequestError,
    ServiceResponseError,
)

from ...core.models import ErrorKind


class StorageError(Exception):
    """Raised when storage operations fail."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.UNKNOWN) -> None:
        super().__init__(message)
        self.kind = kind


class BlobNotFoundError(StorageError):
    """Raised when a blob (or its container) does not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(message, kind=ErrorKind.NOT_FOUND)


class BlobAccessError(StorageError):
    """Raised when a signed read URL cannot be issued."""
    pass


_STATUS_KINDS = {
    401: ErrorKind.PERMISSION_DENIED,
    403: ErrorKind.PERMISSION_DENIED,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.CONFLICT,
    412: ErrorKind.CONFLICT,
}


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception raised by the SDK (or the mock) to an ErrorKind."""
    if isinstance(exc, StorageError):
        return exc.kind
    if isinstance(exc, ResourceNotFoundError):
        return ErrorKind.NOT_FOUND
    if isinstance(exc, ClientAuthenticationError):
        return ErrorKind.PERMISSION_DENIED
    if isinstance(exc, (ResourceExistsError, ResourceModifiedError)):
        return ErrorKind.CONFLICT
    if isinstance(exc, (ServiceRequestError, ServiceResponseError)):
        return ErrorKind.NETWORK
    if isinstance(exc, HttpResponseError):
        status: Optional[int] = exc.status_code
        return _STATUS_KINDS.get(status, ErrorKind.UNKNOWN)
    if isinstance(exc, (OSError, asyncio.TimeoutError)):
        return ErrorKind.NETWORK
    return ErrorKind.UNKNOWN
