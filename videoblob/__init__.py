"""
videoblob - async gateway for video files in Azure Blob Storage.

This package contains:
- core: Framework-agnostic result types
- infrastructure: Azure Blob Storage gateway and in-memory mock
- config: Application configuration and logging setup
"""

__version__ = "0.1.0"
