"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables (or a ``.env`` file).
Storage settings use the ``AzureStorageSettings__`` prefix, which is how
the ``AzureStorageSettings:BLOB_CONNECTION_STRING`` style keys are spelled
as environment variables. Matching is case-insensitive.

Mock mode enables local development without a storage account.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.models import ErrorStrategy


class AzureStorageSettings(BaseSettings):
    """Blob storage account and container settings."""

    blob_connection_string: str = Field(
        default="",
        description="Storage account connection string. Must include AccountKey to sign read URLs."
    )
    blob_container_name: str = Field(
        default="",
        description="Container holding the video blobs"
    )
    sas_expiry_minutes: int = Field(
        default=15,
        gt=0,
        description="Lifetime of issued read URLs in minutes"
    )
    video_suffix: str = Field(
        default=".mp4",
        description="Case-sensitive suffix a blob name needs to be listed as a video"
    )
    error_strategy: ErrorStrategy = Field(
        default=ErrorStrategy.SUPPRESS,
        description="'suppress' returns failed results from upload/delete, 'raise' raises StorageError"
    )
    mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of Azure. Enables local dev without a storage account."
    )

    model_config = SettingsConfigDict(
        env_prefix="AZURESTORAGESETTINGS__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    """

    azure_storage: AzureStorageSettings = Field(default_factory=AzureStorageSettings)

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def validate_required_fields(self) -> list[str]:
        """
        Return the names of required variables that are unset.

        Connection string and container name are only required
        outside mock mode.
        """
        missing = []

        storage = self.azure_storage
        if not storage.mock_mode:
            if not storage.blob_connection_string:
                missing.append("AzureStorageSettings__BLOB_CONNECTION_STRING")
            if not storage.blob_container_name:
                missing.append("AzureStorageSettings__BLOB_CONTAINER_NAME")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are read once per process. For tests, call
    get_settings.cache_clear() to reset.
    """
    return Settings()
