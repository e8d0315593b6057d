"""
Application configuration using Pydantic settings.

Configuration comes from environment variables with sensible defaults.
Supports mock mode for local development.
"""

from .logging_config import configure_logging
from .settings import AzureStorageSettings, Settings, get_settings

__all__ = ["AzureStorageSettings", "Settings", "configure_logging", "get_settings"]
