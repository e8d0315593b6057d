"""
Blob storage gateway for video files.

Wraps a single Azure Blob Storage container: list videos, issue
short-lived read URLs, stream, upload and delete. Uses the async SDK
(``azure.storage.blob.aio``) so a request waiting on storage never blocks
other requests on the event loop.

Mock mode stores blobs in memory, enabling tests and local development
without a storage account.
"""

import hashlib
import inspect
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import (
    Any,
    AsyncIterator,
    Callable,
    Optional,
    Protocol,
    TypeVar,
    Union,
)

from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import BlobSasPermissions, ContentSettings, generate_blob_sas
from azure.storage.blob.aio import BlobServiceClient

from ...core.models import DeleteResult, ErrorStrategy, OperationResult
from .errors import BlobAccessError, BlobNotFoundError, StorageError, classify_error

logger = logging.getLogger(__name__)

# bytes, a sync file-like object, or an async readable/iterable
UploadContent = Union[bytes, bytearray, Any]

R = TypeVar("R", bound=OperationResult)

_STREAM_CHUNK_SIZE = 4 * 1024 * 1024


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class BlobStorageConfig:
    """
    Configuration for the video container.

    Resolved once by the host and held for the gateway's lifetime.
    """
    connection_string: str
    container_name: str
    sas_expiry_minutes: int = 15
    video_suffix: str = ".mp4"
    error_strategy: ErrorStrategy = ErrorStrategy.SUPPRESS

    def __post_init__(self) -> None:
        if not self.container_name:
            raise ValueError("container_name is required")
        if self.sas_expiry_minutes <= 0:
            raise ValueError("sas_expiry_minutes must be positive")

    @classmethod
    def from_settings(cls, settings) -> "BlobStorageConfig":
        """Build config from ``Settings`` (or its ``azure_storage`` section)."""
        storage = getattr(settings, "azure_storage", settings)
        return cls(
            connection_string=storage.blob_connection_string,
            container_name=storage.blob_container_name,
            sas_expiry_minutes=storage.sas_expiry_minutes,
            video_suffix=storage.video_suffix,
            error_strategy=storage.error_strategy,
        )


class BlobReadStream:
    """
    Forward-only async stream over a blob's content.

    Supports ``await stream.read(n)``, ``async for chunk in stream`` and
    ``async with``. The caller owns closing it.
    """

    def __init__(
        self,
        chunks: AsyncIterator[bytes],
        name: str,
        size: Optional[int] = None,
        content_type: Optional[str] = None,
        chunk_size: int = _STREAM_CHUNK_SIZE,
    ) -> None:
        self.name = name
        self.size = size
        self.content_type = content_type
        self._chunks = chunks.__aiter__()
        self._chunk_size = chunk_size
        self._buffer = bytearray()
        self._exhausted = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes, or everything left when ``size`` < 0."""
        if self._closed:
            raise ValueError("I/O operation on closed stream")

        while not self._exhausted and (size < 0 or len(self._buffer) < size):
            try:
                chunk = await self._chunks.__anext__()
            except StopAsyncIteration:
                self._exhausted = True
                break
            self._buffer.extend(chunk)

        if size < 0:
            data = bytes(self._buffer)
            self._buffer.clear()
        else:
            data = bytes(self._buffer[:size])
            del self._buffer[:size]
        return data

    def __aiter__(self) -> "BlobReadStream":
        return self

    async def __anext__(self) -> bytes:
        data = await self.read(self._chunk_size)
        if not data:
            raise StopAsyncIteration
        return data

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._buffer.clear()
        close = getattr(self._chunks, "aclose", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "BlobReadStream":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


class BlobGateway(Protocol):
    """
    Protocol for video container operations.

    Using a protocol means tests can provide the in-memory gateway and
    callers don't depend on the Azure SDK directly.
    """

    async def issue_read_url(self, name: str) -> str:
        """Return the blob URL with a read-only SAS query appended."""
        ...

    async def list_videos(self) -> list[str]:
        """Names of blobs ending in the video suffix, in service order."""
        ...

    async def open_read_stream(self, name: str) -> BlobReadStream:
        """Open a forward-only stream at the start of the blob."""
        ...

    async def upload(
        self,
        name: str,
        content: UploadContent,
        content_type: str,
    ) -> OperationResult:
        """Create the container if needed and upload, overwriting."""
        ...

    async def delete(self, name: str) -> DeleteResult:
        """Delete the blob if it exists."""
        ...

    async def provision(self) -> None:
        """Create the container if needed and make it private."""
        ...

    async def close(self) -> None:
        ...


def _write_failure(
    config: BlobStorageConfig,
    operation: str,
    name: str,
    exc: Exception,
    result_type: Callable[..., R],
) -> R:
    """
    Log a failed upload/delete and apply the error strategy.

    Must be called from inside the ``except`` block so a re-raise chains
    the original exception.
    """
    kind = classify_error(exc)
    logger.error(
        f"Failed to {operation} blob",
        extra={
            "blob_name": name,
            "container": config.container_name,
            "error_kind": kind.value,
            "error": str(exc),
        }
    )
    if config.error_strategy is ErrorStrategy.RAISE:
        raise StorageError(f"Blob {operation} failed: {exc}", kind=kind) from exc
    return result_type(kind, str(exc))


class AzureBlobGateway:
    """
    Azure Blob Storage gateway for one container.

    The service client is built once from the connection string. Container
    and blob clients are cheap local objects, so each call derives its own.
    """

    def __init__(
        self,
        config: BlobStorageConfig,
        service_client: Optional[BlobServiceClient] = None,
    ) -> None:
        if service_client is None:
            if not config.connection_string:
                raise ValueError("connection_string is required for Azure storage")
            service_client = BlobServiceClient.from_connection_string(
                config.connection_string
            )

        self._config = config
        self._service = service_client

        logger.info(
            "Initialized Azure blob gateway",
            extra={
                "container": config.container_name,
                "account": getattr(service_client, "account_name", None),
            }
        )

    @property
    def config(self) -> BlobStorageConfig:
        return self._config

    def _container(self):
        return self._service.get_container_client(self._config.container_name)

    async def issue_read_url(self, name: str) -> str:
        """
        Issue a read-only URL for one blob.

        The SAS is signed locally with the account key the SDK parsed from
        the connection string; no request reaches the service. Container
        access policy is left alone, see ``provision``.
        """
        try:
            blob_client = self._container().get_blob_client(name)
            account_key = getattr(self._service.credential, "account_key", None)
            if not account_key:
                raise ValueError("connection string has no AccountKey to sign with")

            expiry = _utcnow() + timedelta(minutes=self._config.sas_expiry_minutes)
            sas_token = generate_blob_sas(
                account_name=blob_client.account_name,
                container_name=self._config.container_name,
                blob_name=name,
                account_key=account_key,
                permission=BlobSasPermissions(read=True),
                expiry=expiry,
            )

            logger.debug(
                "Issued read URL",
                extra={"blob_name": name, "expires_at": expiry.isoformat()}
            )

            return f"{blob_client.url}?{sas_token}"

        except Exception as e:
            logger.error(
                "Failed to issue read URL",
                extra={"blob_name": name, "error": str(e)}
            )
            raise BlobAccessError(
                f"Read URL issuance failed: {e}", kind=classify_error(e)
            ) from e

    async def list_videos(self) -> list[str]:
        """List video blob names. SDK errors propagate unchanged."""
        suffix = self._config.video_suffix
        names = []
        async for blob in self._container().list_blobs():
            if blob.name.endswith(suffix):
                names.append(blob.name)

        logger.debug(
            "Listed videos",
            extra={"container": self._config.container_name, "count": len(names)}
        )

        return names

    async def open_read_stream(self, name: str) -> BlobReadStream:
        """Start a download. A missing blob raises BlobNotFoundError."""
        blob_client = self._container().get_blob_client(name)
        try:
            downloader = await blob_client.download_blob()
        except ResourceNotFoundError as e:
            raise BlobNotFoundError(f"Blob not found: {name}") from e

        content_type = None
        properties = getattr(downloader, "properties", None)
        if properties is not None and properties.content_settings is not None:
            content_type = properties.content_settings.content_type

        logger.debug(
            "Opened blob stream",
            extra={"blob_name": name, "size_bytes": downloader.size}
        )

        return BlobReadStream(
            downloader.chunks(),
            name=name,
            size=downloader.size,
            content_type=content_type,
        )

    async def _create_container_if_absent(self) -> bool:
        """Create the container. Returns False if it already existed."""
        try:
            await self._container().create_container()
        except ResourceExistsError:
            return False
        logger.info(
            "Created container",
            extra={"container": self._config.container_name}
        )
        return True

    async def upload(
        self,
        name: str,
        content: UploadContent,
        content_type: str,
    ) -> OperationResult:
        """
        Upload a blob, creating the container first if needed.

        Any existing blob with the same name is overwritten.
        """
        try:
            await self._create_container_if_absent()

            blob_client = self._container().get_blob_client(name)
            await blob_client.upload_blob(
                content,
                overwrite=True,
                content_settings=ContentSettings(content_type=content_type),
            )

            logger.info(
                "Uploaded video",
                extra={
                    "blob_name": name,
                    "container": self._config.container_name,
                    "content_type": content_type,
                }
            )

            return OperationResult.ok()

        except Exception as e:
            return _write_failure(self._config, "upload", name, e, OperationResult.failure)

    async def delete(self, name: str) -> DeleteResult:
        """Delete-if-exists. Snapshots go with the blob."""
        try:
            blob_client = self._container().get_blob_client(name)
            try:
                await blob_client.delete_blob(delete_snapshots="include")
            except ResourceNotFoundError:
                logger.debug("Blob already absent", extra={"blob_name": name})
                return DeleteResult.deleted(existed=False)

            logger.info(
                "Deleted video",
                extra={"blob_name": name, "container": self._config.container_name}
            )

            return DeleteResult.deleted(existed=True)

        except Exception as e:
            return _write_failure(self._config, "delete", name, e, DeleteResult.failure)

    async def provision(self) -> None:
        """
        Create the container if absent and set it to private.

        Run once at deploy or startup. Read URLs only need the container
        to be private, so issuing them does not write the policy again.
        """
        container = self._container()
        await self._create_container_if_absent()
        await container.set_container_access_policy(
            signed_identifiers={},
            public_access=None,
        )

        logger.info(
            "Provisioned private container",
            extra={"container": self._config.container_name}
        )

    async def close(self) -> None:
        await self._service.close()

    async def __aenter__(self) -> "AzureBlobGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

@dataclass
class _MockBlob:
    data: bytes
    content_type: str


async def _read_upload_content(content: UploadContent) -> bytes:
    """Drain bytes, sync/async readers, or (async) iterables of chunks."""
    if isinstance(content, (bytes, bytearray)):
        return bytes(content)
    if isinstance(content, str):
        return content.encode("utf-8")

    read = getattr(content, "read", None)
    if read is not None:
        data = read()
        if inspect.isawaitable(data):
            data = await data
        return data.encode("utf-8") if isinstance(data, str) else bytes(data)

    buffer = bytearray()
    if hasattr(content, "__aiter__"):
        async for chunk in content:
            buffer.extend(chunk)
    else:
        for chunk in content:
            buffer.extend(chunk)
    return bytes(buffer)


async def _iter_chunks(data: bytes, chunk_size: int) -> AsyncIterator[bytes]:
    for start in range(0, len(data), chunk_size):
        yield data[start:start + chunk_size]


class MockBlobGateway:
    """
    In-memory gateway for local development and tests.

    Blobs keep insertion order, like a container listing. The container
    starts absent; upload or provision creates it. ``fail_with`` makes the
    next call raise, for exercising failure handling.

    Not suitable for production.
    """

    def __init__(
        self,
        config: Optional[BlobStorageConfig] = None,
        chunk_size: int = 64 * 1024,
    ) -> None:
        self._config = config or BlobStorageConfig(
            connection_string="",
            container_name="videos",
        )
        self._chunk_size = chunk_size
        self._blobs: dict[str, _MockBlob] = {}
        self._container_exists = False
        self._is_private = False
        self._pending_failure: Optional[Exception] = None
        logger.info("Initialized mock blob gateway (in-memory)")

    @property
    def config(self) -> BlobStorageConfig:
        return self._config

    @property
    def container_exists(self) -> bool:
        return self._container_exists

    @property
    def is_private(self) -> bool:
        return self._is_private

    def fail_with(self, exc: Exception) -> None:
        """Make the next gateway call raise ``exc``."""
        self._pending_failure = exc

    def _raise_pending_failure(self) -> None:
        if self._pending_failure is not None:
            exc, self._pending_failure = self._pending_failure, None
            raise exc

    def _require_container(self) -> None:
        if not self._container_exists:
            raise BlobNotFoundError(f"Container not found: {self._config.container_name}")

    async def issue_read_url(self, name: str) -> str:
        """
        Return a mock URL signed over its expiry.

        Like a real SAS, URLs issued within the same second are identical.
        """
        try:
            self._raise_pending_failure()
            self._require_container()
            if name not in self._blobs:
                raise BlobNotFoundError(f"Blob not found: {name}")
        except Exception as e:
            raise BlobAccessError(
                f"Read URL issuance failed: {e}", kind=classify_error(e)
            ) from e

        expiry = _utcnow() + timedelta(minutes=self._config.sas_expiry_minutes)
        base_url = f"mock://{self._config.container_name}/{name}"
        expires_on = expiry.strftime("%Y-%m-%dT%H:%M:%SZ")
        signature = hashlib.sha256(f"{base_url}\n{expires_on}\nr".encode("utf-8")).hexdigest()
        return f"{base_url}?se={expires_on}&sp=r&sr=b&sig={signature}"

    async def list_videos(self) -> list[str]:
        self._raise_pending_failure()
        self._require_container()
        suffix = self._config.video_suffix
        return [name for name in self._blobs if name.endswith(suffix)]

    async def open_read_stream(self, name: str) -> BlobReadStream:
        self._raise_pending_failure()
        blob = self._blobs.get(name) if self._container_exists else None
        if blob is None:
            raise BlobNotFoundError(f"Blob not found: {name}")

        return BlobReadStream(
            _iter_chunks(blob.data, self._chunk_size),
            name=name,
            size=len(blob.data),
            content_type=blob.content_type,
            chunk_size=self._chunk_size,
        )

    async def upload(
        self,
        name: str,
        content: UploadContent,
        content_type: str,
    ) -> OperationResult:
        """Store blob in memory, creating the container if needed."""
        try:
            self._raise_pending_failure()
            self._container_exists = True
            data = await _read_upload_content(content)
            self._blobs[name] = _MockBlob(data=data, content_type=content_type)
        except Exception as e:
            return _write_failure(self._config, "upload", name, e, OperationResult.failure)

        logger.debug(
            "Stored blob in mock storage",
            extra={"blob_name": name, "size_bytes": len(data)}
        )
        return OperationResult.ok()

    async def delete(self, name: str) -> DeleteResult:
        try:
            self._raise_pending_failure()
        except Exception as e:
            return _write_failure(self._config, "delete", name, e, DeleteResult.failure)

        existed = self._blobs.pop(name, None) is not None
        return DeleteResult.deleted(existed=existed)

    async def provision(self) -> None:
        self._raise_pending_failure()
        self._container_exists = True
        self._is_private = True

    async def close(self) -> None:
        pass

    async def __aenter__(self) -> "MockBlobGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_blob_gateway(
    config: Optional[BlobStorageConfig] = None,
    mock_mode: bool = False,
) -> BlobGateway:
    """
    Create a blob gateway based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return the in-memory gateway

    Returns:
        BlobGateway implementation (Azure or Mock)
    """
    if mock_mode:
        return MockBlobGateway(config)

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return AzureBlobGateway(config)
