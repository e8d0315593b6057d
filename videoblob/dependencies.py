"""
Gateway provisioning from application settings.

``get_blob_gateway`` is a generator dependency: it yields a gateway for
one request (or one unit of work) and closes the Azure client and its
HTTP session afterwards. ``blob_gateway`` wraps it as an async context
manager for hosts without a dependency-injection framework:

    async with blob_gateway() as gateway:
        names = await gateway.list_videos()

In mock mode every call yields the same in-memory gateway, so uploaded
blobs persist for the session.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from .config.settings import Settings, get_settings
from .infrastructure.storage.client import (
    BlobGateway,
    BlobStorageConfig,
    MockBlobGateway,
    create_blob_gateway,
)

logger = logging.getLogger(__name__)

# Shared mock instance (persists across requests for testing)
_mock_gateway: Optional[MockBlobGateway] = None


async def get_blob_gateway(
    settings: Optional[Settings] = None,
) -> AsyncGenerator[BlobGateway, None]:
    """
    Provide a blob gateway for the configured container.

    This is a generator function (yields instead of returns) because the
    Azure gateway owns an HTTP session that must be closed:
    1. Build the gateway
    2. Yield it to the caller
    3. Close it, even if the caller raised

    The shared mock is never closed. Raises ValueError when required
    storage settings are missing.
    """
    global _mock_gateway

    settings = settings or get_settings()
    storage = settings.azure_storage

    if storage.mock_mode:
        if _mock_gateway is None:
            config = BlobStorageConfig(
                connection_string="",
                container_name=storage.blob_container_name or "videos",
                sas_expiry_minutes=storage.sas_expiry_minutes,
                video_suffix=storage.video_suffix,
                error_strategy=storage.error_strategy,
            )
            _mock_gateway = MockBlobGateway(config)
            logger.info("Created shared mock blob gateway for session")
        yield _mock_gateway
        return

    missing = settings.validate_required_fields()
    if missing:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing}
        )
        raise ValueError(f"Missing required configuration: {', '.join(missing)}")

    gateway = create_blob_gateway(BlobStorageConfig.from_settings(settings))
    logger.debug("Created Azure blob gateway")
    try:
        yield gateway
    finally:
        await gateway.close()
        logger.debug("Closed Azure blob gateway")


blob_gateway = asynccontextmanager(get_blob_gateway)


def reset_mock_gateway() -> None:
    """Drop the shared mock gateway. Used by tests."""
    global _mock_gateway
    _mock_gateway = None
